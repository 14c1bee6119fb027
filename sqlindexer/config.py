"""
Configuration settings for the SQL-to-index migrator.

Uses Pydantic Settings to load environment variables for the source database,
the Elasticsearch endpoint, the worker pool, and logging. Values are read from
the process environment first and from a local `.env` file second.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SOURCE_QUERY = """
SELECT authors.id, authors.name, authors.bio, authors.birth_date,
       books.title, books.description, books.publish_date
FROM authors
LEFT JOIN books ON authors.id = books.author_id
ORDER BY authors.id
"""


class Settings(BaseSettings):
    # Source database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("library", alias="DB_NAME")
    db_connect_timeout: int = Field(10, alias="DB_CONNECT_TIMEOUT", ge=1)
    source_dsn: Optional[str] = Field(None, alias="SOURCE_DSN")
    source_query: str = Field(DEFAULT_SOURCE_QUERY, alias="SOURCE_QUERY")
    source_fetch_size: int = Field(1_000, alias="SOURCE_FETCH_SIZE", ge=1)

    # Elasticsearch
    elasticsearch_url: str = Field("http://localhost:9200", alias="ELASTICSEARCH_URL")
    elasticsearch_index: str = Field("authors", alias="ELASTICSEARCH_INDEX")
    elasticsearch_api_key: Optional[str] = Field(None, alias="ELASTICSEARCH_API_KEY")
    elasticsearch_timeout: float = Field(30.0, alias="ELASTICSEARCH_TIMEOUT", gt=0)

    # Worker pool
    migration_workers: int = Field(5, alias="MIGRATION_WORKERS", ge=1)
    migration_queue_capacity: Optional[int] = Field(
        None, alias="MIGRATION_QUEUE_CAPACITY", ge=1
    )

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _default_queue_capacity(self) -> "Settings":
        # Queue capacity follows the worker count unless tuned explicitly.
        if self.migration_queue_capacity is None:
            self.migration_queue_capacity = self.migration_workers
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["DEFAULT_SOURCE_QUERY", "Settings", "get_settings"]
