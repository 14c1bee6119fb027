from __future__ import annotations

from rich.console import Console

from sqlindexer.reporter import MAX_LISTED_FAILURES, print_summary


def _payload(**overrides):
    payload = {
        "state": "succeeded",
        "index": "authors",
        "rows_read": 4,
        "processed": 4,
        "succeeded": 4,
        "failed": 0,
        "workers": 5,
        "queue_capacity": 5,
        "queue_high_water_mark": 2,
        "duration_seconds": 0.5,
        "throughput_docs_per_sec": 8.0,
        "peak_rss_bytes": 50 * 1024 * 1024,
        "error_category": None,
        "error_message": None,
        "failures": [],
        "dry_run": False,
    }
    payload.update(overrides)
    return payload


def _render(payload) -> str:
    console = Console(record=True, width=160)
    print_summary(payload, console=console)
    return console.export_text()


def test_summary_shows_counts_and_state():
    text = _render(_payload())

    assert "SUCCEEDED" in text
    assert "Documents processed" in text
    assert "50.00" in text
    assert "Rejected documents" not in text


def test_failed_run_shows_fatal_error():
    text = _render(
        _payload(state="failed", error_category="transport", error_message="connection reset")
    )

    assert "FAILED" in text
    assert "transport" in text
    assert "connection reset" in text


def test_rejections_are_listed_and_truncated():
    failures = [
        {"document_id": str(n), "category": "index_rejection", "worker": 1, "message": "bad"}
        for n in range(MAX_LISTED_FAILURES + 5)
    ]

    text = _render(_payload(failed=len(failures), failures=failures))

    assert "Rejected documents" in text
    assert "index_rejection" in text
    assert "and 5 more" in text
