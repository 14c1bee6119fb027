"""
Data generation and loading script for the migrator.

Creates the `authors`/`books` schema if missing, generates deterministic
pseudo-random authors (some with several books, some with none), writes them
as CSV, and loads them with Postgres COPY.
"""

from __future__ import annotations

import csv
import random
import sys
import tempfile
import time
from datetime import date, timedelta
from pathlib import Path

import psycopg
import typer

from sqlindexer.infrastructure.source import build_dsn

app = typer.Typer(help="Generate synthetic authors/books and load into Postgres (CSV + COPY).")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS authors (
    id BIGINT PRIMARY KEY,
    name TEXT NOT NULL,
    bio TEXT NOT NULL,
    birth_date DATE NOT NULL
);
CREATE TABLE IF NOT EXISTS books (
    id BIGSERIAL PRIMARY KEY,
    author_id BIGINT NOT NULL REFERENCES authors (id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    publish_date DATE NOT NULL
);
"""

AUTHOR_HEADER = ["id", "name", "bio", "birth_date"]
BOOK_HEADER = ["author_id", "title", "description", "publish_date"]

_FIRST = ["Ada", "Jorge", "Clarice", "Italo", "Ursula", "Chinua", "Wislawa", "Haruki"]
_LAST = ["Lovelace", "Borges", "Lispector", "Calvino", "Le Guin", "Achebe", "Szymborska", "Murakami"]
_NOUNS = ["River", "Labyrinth", "City", "Hour", "Garden", "Mirror", "Winter", "Harbor"]


def _build_dsn(dsn_override: str | None) -> str:
    if dsn_override:
        return dsn_override
    return build_dsn()


def _generate_csvs(
    authors_path: Path,
    books_path: Path,
    authors: int,
    max_books: int,
    seed: int,
) -> tuple[int, int]:
    """
    Write authors and books CSVs; return (author_count, book_count).

    Each author gets between 0 and `max_books` books, so the outer join
    produces both multi-row authors and authors with null book columns.
    """
    rng = random.Random(seed)
    epoch = date(1900, 1, 1)
    book_count = 0

    with authors_path.open("w", newline="", encoding="utf-8") as af, books_path.open(
        "w", newline="", encoding="utf-8"
    ) as bf:
        author_writer = csv.writer(af)
        book_writer = csv.writer(bf)
        author_writer.writerow(AUTHOR_HEADER)
        book_writer.writerow(BOOK_HEADER)

        for author_id in range(1, authors + 1):
            name = f"{rng.choice(_FIRST)} {rng.choice(_LAST)}"
            birth = epoch + timedelta(days=rng.randint(0, 36_500))
            author_writer.writerow(
                [author_id, name, f"{name} writes about {rng.choice(_NOUNS).lower()}s.", birth.isoformat()]
            )
            for _ in range(rng.randint(0, max_books)):
                published = birth + timedelta(days=rng.randint(7_000, 25_000))
                title = f"The {rng.choice(_NOUNS)} of {rng.choice(_NOUNS)}s"
                book_writer.writerow(
                    [author_id, title, f"A novel by {name}.", published.isoformat()]
                )
                book_count += 1

    return authors, book_count


def _copy_into_db(dsn: str, authors_path: Path, books_path: Path) -> None:
    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
            for table, columns, path in (
                ("authors", AUTHOR_HEADER, authors_path),
                ("books", BOOK_HEADER, books_path),
            ):
                with cur.copy(
                    f"COPY {table} ({', '.join(columns)}) FROM STDIN WITH (FORMAT csv, HEADER TRUE)"
                ) as copy:
                    with path.open("r", encoding="utf-8") as f:
                        for line in f:
                            copy.write(line)
        conn.commit()


@app.command()
def main(
    authors: int = typer.Option(
        1_000,
        "--authors",
        "-a",
        help="Number of authors to generate.",
    ),
    max_books: int = typer.Option(
        3,
        "--max-books",
        "-b",
        help="Maximum books per author (minimum is always 0).",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Optional output directory for the CSVs (a temp dir if omitted).",
    ),
    dsn: str | None = typer.Option(
        None,
        "--dsn",
        help="Optional DSN override for Postgres.",
    ),
    no_load: bool = typer.Option(
        False,
        "--no-load",
        help="Only generate CSVs; skip loading into Postgres.",
    ),
) -> None:
    """
    Generate synthetic authors/books and optionally load them into Postgres.
    """
    start = time.perf_counter()
    out_dir = output or Path(tempfile.mkdtemp(prefix="sqlindexer_csv_"))
    out_dir.mkdir(parents=True, exist_ok=True)
    authors_path = out_dir / "authors.csv"
    books_path = out_dir / "books.csv"

    typer.echo(f"Generating {authors:,} authors -> {out_dir} (max_books={max_books}, seed={seed})")
    _, book_count = _generate_csvs(authors_path, books_path, authors, max_books, seed)
    typer.echo(f"Generated {book_count:,} books in {time.perf_counter() - start:.2f}s")

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    typer.echo("Loading CSVs into Postgres via COPY...")
    _copy_into_db(_build_dsn(dsn), authors_path, books_path)
    typer.echo(f"Load completed. Total time {time.perf_counter() - start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
