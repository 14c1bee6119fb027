"""
Elasticsearch access for the migrator.

`build_index_client` creates the shared client, `check_index_connection`
verifies the endpoint answers before the run starts, and `ElasticsearchIndexer`
performs the per-record upsert and translates client exceptions into the
pipeline's error taxonomy.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from elasticsearch import ApiError, Elasticsearch
from elasticsearch import SerializationError as ClientSerializationError
from elasticsearch import TransportError as ClientTransportError
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sqlindexer.config import Settings, get_settings
from sqlindexer.domain.models import Record
from sqlindexer.errors import (
    ConnectionFailure,
    IndexRejection,
    SerializationError,
    TransportError,
)
from sqlindexer.utils.logging import get_logger

log = get_logger(__name__)

# Statuses that mean every following request will fail the same way.
_FATAL_API_STATUSES = frozenset({401, 403})


@runtime_checkable
class DocumentIndexer(Protocol):
    """
    Anything that can upsert a Record into the index.

    Implementations must be safe to call from several worker threads at once
    and must raise only `MigrationError` subclasses.
    """

    index_name: str

    def upsert(self, record: Record) -> str:
        """Create or replace the document for `record` and return the result label."""
        ...


def build_index_client(settings: Optional[Settings] = None) -> Elasticsearch:
    """
    Create the Elasticsearch client shared by all workers.
    """
    settings = settings or get_settings()
    kwargs: dict[str, Any] = {
        "request_timeout": settings.elasticsearch_timeout,
        # Each upsert is sent exactly once.
        "max_retries": 0,
        "retry_on_status": (),
        "retry_on_timeout": False,
    }
    if settings.elasticsearch_api_key:
        kwargs["api_key"] = settings.elasticsearch_api_key
    return Elasticsearch(settings.elasticsearch_url, **kwargs)


class _EndpointUnavailable(Exception):
    pass


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((_EndpointUnavailable, ClientTransportError)),
)
def _ping(client: Elasticsearch) -> None:
    if not client.ping():
        raise _EndpointUnavailable("ping returned False")


def check_index_connection(client: Elasticsearch) -> None:
    """
    Verify the index service answers, retrying transient failures.

    Raises
    ------
    ConnectionFailure
        If the service is still unreachable after all retry attempts.
    """
    try:
        _ping(client)
    except RetryError as exc:
        cause = exc.last_attempt.exception()
        raise ConnectionFailure(f"cannot reach index service: {cause}") from cause


class ElasticsearchIndexer:
    """
    Upsert Records one at a time with synchronous visibility (`refresh=true`).

    Error mapping
    -------------
    - client serialization failure -> SerializationError (non-fatal)
    - connection/timeout/transport failure -> TransportError (fatal)
    - 401/403 responses -> ConnectionFailure (fatal)
    - any other error response -> IndexRejection (non-fatal)
    """

    def __init__(self, client: Elasticsearch, index_name: str) -> None:
        self.client = client
        self.index_name = index_name

    def upsert(self, record: Record) -> str:
        document_id = record.document_id
        document = record.to_document()
        try:
            response = self.client.index(
                index=self.index_name,
                id=document_id,
                document=document,
                refresh=True,
            )
        except ClientSerializationError as exc:
            raise SerializationError(str(exc), document_id=document_id) from exc
        except ClientTransportError as exc:
            raise TransportError(
                f"index service unreachable: {exc}", document_id=document_id
            ) from exc
        except ApiError as exc:
            status = exc.meta.status
            if status in _FATAL_API_STATUSES:
                raise ConnectionFailure(
                    f"index service refused credentials ({status}): {exc.message}",
                    document_id=document_id,
                ) from exc
            raise IndexRejection(
                f"index service rejected document ({status}): {exc.message}",
                document_id=document_id,
                status=status,
            ) from exc
        return str(response.get("result", "unknown"))


class DryRunIndexer:
    """
    Serialize Records without writing them; used by `run --dry-run`.
    """

    def __init__(self, index_name: str = "dry-run") -> None:
        self.index_name = index_name

    def upsert(self, record: Record) -> str:
        record.to_document()
        return "skipped"


__all__ = [
    "DocumentIndexer",
    "DryRunIndexer",
    "ElasticsearchIndexer",
    "build_index_client",
    "check_index_connection",
]
