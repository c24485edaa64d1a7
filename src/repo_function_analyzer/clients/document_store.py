from collections import defaultdict
from logging import Logger
from typing import Any, Protocol, override

from elasticsearch import ApiError, AsyncElasticsearch, NotFoundError, TransportError
from fastmcp.utilities.logging import get_logger

from repo_function_analyzer.clients.errors.github import ClientError

Document = dict[str, Any]

DEFAULT_INDEX_PREFIX = "repo-function-analyzer"


class DocumentStoreError(ClientError):
    """The document store could not complete a read or a write."""

    def __init__(self, action: str, collection: str, key: str, message: str | None = None):
        super().__init__(
            message="A document store error occured.",
            extra_info={"action": action, "collection": collection, "key": key, "message": message},
        )


class DocumentStore(Protocol):
    """A keyed document store with a merge-write primitive."""

    async def get(self, collection: str, key: str) -> Document | None:
        """Get a document, or None if it does not exist."""
        ...

    async def put(self, collection: str, key: str, document: Document, merge: bool = True) -> None:
        """Write a document. With `merge`, only the fields present in `document` are updated."""
        ...


class InMemoryDocumentStore(DocumentStore):
    collections: dict[str, dict[str, Document]]

    def __init__(self) -> None:
        self.collections = defaultdict(dict)

    @override
    async def get(self, collection: str, key: str) -> Document | None:
        if (document := self.collections[collection].get(key)) is None:
            return None

        return dict(document)

    @override
    async def put(self, collection: str, key: str, document: Document, merge: bool = True) -> None:
        existing: Document = self.collections[collection].get(key, {}) if merge else {}

        self.collections[collection][key] = {**existing, **document}


class ElasticsearchDocumentStore(DocumentStore):
    """Stores each collection in its own index. Merge-writes are partial-document upserts."""

    elasticsearch_client: AsyncElasticsearch
    index_prefix: str
    logger: Logger

    def __init__(self, elasticsearch_client: AsyncElasticsearch, index_prefix: str = DEFAULT_INDEX_PREFIX, logger: Logger | None = None):
        self.elasticsearch_client = elasticsearch_client
        self.index_prefix = index_prefix
        self.logger = logger or get_logger(__name__)

    def _index(self, collection: str) -> str:
        return f"{self.index_prefix}-{collection}"

    @override
    async def get(self, collection: str, key: str) -> Document | None:
        try:
            response = await self.elasticsearch_client.get(index=self._index(collection), id=key)
        except NotFoundError:
            return None
        except (ApiError, TransportError) as e:
            raise DocumentStoreError(action="get", collection=collection, key=key, message=str(e)) from e

        source: Document | None = response.body.get("_source")  # pyright: ignore[reportAny]

        return source

    @override
    async def put(self, collection: str, key: str, document: Document, merge: bool = True) -> None:
        try:
            if merge:
                _ = await self.elasticsearch_client.update(index=self._index(collection), id=key, doc=document, doc_as_upsert=True)
            else:
                _ = await self.elasticsearch_client.index(index=self._index(collection), id=key, document=document)
        except (ApiError, TransportError) as e:
            raise DocumentStoreError(action="put", collection=collection, key=key, message=str(e)) from e
