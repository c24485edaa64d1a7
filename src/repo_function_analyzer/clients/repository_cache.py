import re
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from logging import Logger
from typing import Any

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from repo_function_analyzer.clients.document_store import Document, DocumentStore, DocumentStoreError

CACHE_TTL = timedelta(hours=24)

REPOSITORIES_COLLECTION = "repositories"
FILES_COLLECTION = "files"

LAST_UPDATED_FIELD = "lastUpdated"
DATA_FIELD = "data"

UNSAFE_KEY_CHARACTERS = re.compile(r"[/.]")


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def sanitize_key(key: str) -> str:
    """Document ids may not contain path separators or dots."""
    return UNSAFE_KEY_CHARACTERS.sub("_", key)


class CacheKey(BaseModel):
    """Identifies a cached repository listing, or a cached file when `path` is set."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    path: str | None = None

    @property
    def collection(self) -> str:
        return REPOSITORIES_COLLECTION if self.path is None else FILES_COLLECTION

    @property
    def document_id(self) -> str:
        if self.path is None:
            return sanitize_key(f"{self.owner}_{self.repo}")
        return sanitize_key(f"{self.owner}_{self.repo}_{self.path}")

    def identity_fields(self) -> Document:
        fields: Document = {"owner": self.owner, "repo": self.repo}
        if self.path is not None:
            fields["path"] = self.path
        return fields

    def __str__(self) -> str:
        return f"{self.collection}/{self.document_id}"


def parse_last_updated(document: Document) -> datetime | None:
    value: Any = document.get(LAST_UPDATED_FIELD)  # pyright: ignore[reportAny]

    if isinstance(value, datetime):
        last_updated = value
    elif isinstance(value, str):
        try:
            last_updated = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        return None

    if last_updated.tzinfo is None:
        last_updated = last_updated.replace(tzinfo=UTC)

    return last_updated


class RepositoryCache:
    """A read-through, write-through TTL cache in front of the repository fetcher.

    Expired entries are treated as absent and are overwritten by the next successful fetch. A failing fetch
    leaves the stored entry untouched and its error propagates.
    """

    document_store: DocumentStore
    logger: Logger
    ttl: timedelta
    clock: Callable[[], datetime]

    def __init__(
        self,
        document_store: DocumentStore,
        logger: Logger | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.document_store = document_store
        self.logger = logger or get_logger(__name__)
        self.ttl = CACHE_TTL
        self.clock = clock or utc_now

    def is_fresh(self, document: Document) -> bool:
        if (last_updated := parse_last_updated(document)) is None:
            return False

        return self.clock() - last_updated < self.ttl

    async def _read[T: BaseModel](self, key: CacheKey, payload_type: type[T]) -> T | None:
        try:
            document: Document | None = await self.document_store.get(collection=key.collection, key=key.document_id)
        except DocumentStoreError as e:
            self.logger.warning(f"Cache read for {key} failed, treating it as a miss: {e}")
            return None

        if document is None:
            self.logger.debug(f"Cache miss for {key}")
            return None

        if not self.is_fresh(document):
            self.logger.info(f"Cache entry for {key} has expired")
            return None

        try:
            return TypeAdapter[T](payload_type).validate_python(document.get(DATA_FIELD))
        except ValidationError as e:
            self.logger.warning(f"Cache entry for {key} does not match {payload_type.__name__}, treating it as a miss: {e}")
            return None

    async def _write[T: BaseModel](self, key: CacheKey, payload: T) -> None:
        document: Document = {
            **key.identity_fields(),
            DATA_FIELD: payload.model_dump(mode="json"),
            LAST_UPDATED_FIELD: self.clock().isoformat(),
        }

        try:
            await self.document_store.put(collection=key.collection, key=key.document_id, document=document, merge=True)
        except DocumentStoreError as e:
            self.logger.warning(f"Cache write for {key} failed, the fresh payload is returned uncached: {e}")

    async def get_or_fetch[T: BaseModel](self, key: CacheKey, fetch_fn: Callable[[], Awaitable[T]], payload_type: type[T]) -> T:
        """Return the cached payload for `key` if it is younger than the TTL, otherwise fetch, store and return it."""

        if (cached := await self._read(key=key, payload_type=payload_type)) is not None:
            self.logger.info(f"Cache hit for {key}")
            return cached

        payload: T = await fetch_fn()

        await self._write(key=key, payload=payload)

        return payload
