import os

from elasticsearch import AsyncElasticsearch

from repo_function_analyzer.clients.document_store import (
    DEFAULT_INDEX_PREFIX,
    DocumentStore,
    ElasticsearchDocumentStore,
    InMemoryDocumentStore,
)


def get_elasticsearch_client() -> AsyncElasticsearch | None:
    if not (host := os.getenv("ES_URL")):
        return None

    if not (api_key := os.getenv("ES_API_KEY")):
        return None

    return AsyncElasticsearch(hosts=[host], api_key=api_key, http_compress=True, retry_on_timeout=True)


def get_cache_backend() -> DocumentStore:
    """Elasticsearch when ES_URL and ES_API_KEY are set, otherwise a store that lives as long as the process."""

    if elasticsearch_client := get_elasticsearch_client():
        return ElasticsearchDocumentStore(
            elasticsearch_client=elasticsearch_client,
            index_prefix=os.getenv("ES_CACHE_INDEX_PREFIX") or DEFAULT_INDEX_PREFIX,
        )

    return InMemoryDocumentStore()
