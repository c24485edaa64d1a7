from datetime import timedelta
from typing import override

import pytest
from dirty_equals import IsStr
from inline_snapshot import snapshot
from pydantic import BaseModel

from repo_function_analyzer.clients.document_store import Document, DocumentStoreError, InMemoryDocumentStore
from repo_function_analyzer.clients.errors.github import TransientTransportError
from repo_function_analyzer.clients.repository_cache import CACHE_TTL, CacheKey, RepositoryCache, sanitize_key
from tests.conftest import FrozenClock


class Payload(BaseModel):
    value: str


class CountingFetch:
    def __init__(self, value: str = "fresh"):
        self.value = value
        self.calls = 0

    async def __call__(self) -> Payload:
        self.calls += 1
        return Payload(value=f"{self.value}-{self.calls}")


class FailingFetch:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> Payload:
        self.calls += 1
        raise TransientTransportError(action="Get repository tree", message="connection reset")


class BrokenDocumentStore(InMemoryDocumentStore):
    @override
    async def get(self, collection: str, key: str) -> Document | None:
        raise DocumentStoreError(action="get", collection=collection, key=key, message="cluster unavailable")

    @override
    async def put(self, collection: str, key: str, document: Document, merge: bool = True) -> None:
        raise DocumentStoreError(action="put", collection=collection, key=key, message="cluster unavailable")


REPOSITORY_KEY = CacheKey(owner="octo-org", repo="web.app")
FILE_KEY = CacheKey(owner="octo-org", repo="web.app", path="src/utils/format.js")


class TestCacheKey:
    def test_sanitize_key(self):
        assert sanitize_key("octo/web.app") == "octo_web_app"

    def test_repository_key(self):
        assert REPOSITORY_KEY.collection == "repositories"
        assert REPOSITORY_KEY.document_id == "octo-org_web_app"

    def test_file_key(self):
        assert FILE_KEY.collection == "files"
        assert FILE_KEY.document_id == "octo-org_web_app_src_utils_format_js"


class TestGetOrFetch:
    async def test_fetches_once_within_ttl(self, repository_cache: RepositoryCache, clock: FrozenClock):
        fetch = CountingFetch()

        first = await repository_cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=fetch, payload_type=Payload)
        clock.advance(CACHE_TTL - timedelta(seconds=1))
        second = await repository_cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=fetch, payload_type=Payload)

        assert fetch.calls == 1
        assert first == second == Payload(value="fresh-1")

    async def test_fetches_again_after_expiry(self, repository_cache: RepositoryCache, clock: FrozenClock):
        fetch = CountingFetch()

        _ = await repository_cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=fetch, payload_type=Payload)
        clock.advance(CACHE_TTL)
        refreshed = await repository_cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=fetch, payload_type=Payload)

        assert fetch.calls == 2
        assert refreshed == Payload(value="fresh-2")

    async def test_keys_are_independent(self, repository_cache: RepositoryCache):
        fetch = CountingFetch()

        _ = await repository_cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=fetch, payload_type=Payload)
        _ = await repository_cache.get_or_fetch(key=FILE_KEY, fetch_fn=fetch, payload_type=Payload)

        assert fetch.calls == 2

    async def test_writes_document(
        self, repository_cache: RepositoryCache, document_store: InMemoryDocumentStore, clock: FrozenClock
    ):
        _ = await repository_cache.get_or_fetch(key=FILE_KEY, fetch_fn=CountingFetch(), payload_type=Payload)

        assert document_store.collections["files"]["octo-org_web_app_src_utils_format_js"] == snapshot(
            {
                "owner": "octo-org",
                "repo": "web.app",
                "path": "src/utils/format.js",
                "data": {"value": "fresh-1"},
                "lastUpdated": "2025-01-15T12:00:00+00:00",
            }
        )

    async def test_merge_write_preserves_other_fields(
        self, repository_cache: RepositoryCache, document_store: InMemoryDocumentStore, clock: FrozenClock
    ):
        await document_store.put(
            collection="repositories",
            key=REPOSITORY_KEY.document_id,
            document={"starred": True, "data": {"value": "stale"}, "lastUpdated": "2024-01-01T00:00:00+00:00"},
        )

        result = await repository_cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=CountingFetch(), payload_type=Payload)

        assert result == Payload(value="fresh-1")
        assert document_store.collections["repositories"][REPOSITORY_KEY.document_id] == snapshot(
            {
                "starred": True,
                "data": {"value": "fresh-1"},
                "lastUpdated": IsStr(regex=r"2025-01-15T12:00:00.*"),
                "owner": "octo-org",
                "repo": "web.app",
            }
        )

    async def test_fetch_error_propagates_and_leaves_entry(
        self, repository_cache: RepositoryCache, document_store: InMemoryDocumentStore, clock: FrozenClock
    ):
        _ = await repository_cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=CountingFetch(), payload_type=Payload)
        stored = dict(document_store.collections["repositories"][REPOSITORY_KEY.document_id])

        clock.advance(CACHE_TTL + timedelta(hours=1))
        failing = FailingFetch()

        with pytest.raises(TransientTransportError):
            _ = await repository_cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=failing, payload_type=Payload)

        assert failing.calls == 1
        assert document_store.collections["repositories"][REPOSITORY_KEY.document_id] == stored

    async def test_expired_entry_is_never_served(self, repository_cache: RepositoryCache, clock: FrozenClock):
        _ = await repository_cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=CountingFetch(), payload_type=Payload)

        clock.advance(timedelta(days=2))

        with pytest.raises(TransientTransportError):
            _ = await repository_cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=FailingFetch(), payload_type=Payload)

    async def test_unreadable_timestamp_is_a_miss(self, repository_cache: RepositoryCache, document_store: InMemoryDocumentStore):
        await document_store.put(
            collection="repositories",
            key=REPOSITORY_KEY.document_id,
            document={"data": {"value": "cached"}, "lastUpdated": "yesterday"},
        )
        fetch = CountingFetch()

        result = await repository_cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=fetch, payload_type=Payload)

        assert fetch.calls == 1
        assert result == Payload(value="fresh-1")

    async def test_mismatched_payload_is_a_miss(self, repository_cache: RepositoryCache, document_store: InMemoryDocumentStore):
        await document_store.put(
            collection="repositories",
            key=REPOSITORY_KEY.document_id,
            document={"data": ["not", "a", "payload"], "lastUpdated": "2025-01-15T11:00:00+00:00"},
        )
        fetch = CountingFetch()

        _ = await repository_cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=fetch, payload_type=Payload)

        assert fetch.calls == 1

    async def test_store_failures_are_not_fatal(self, clock: FrozenClock):
        cache = RepositoryCache(document_store=BrokenDocumentStore(), clock=clock)
        fetch = CountingFetch()

        first = await cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=fetch, payload_type=Payload)
        second = await cache.get_or_fetch(key=REPOSITORY_KEY, fetch_fn=fetch, payload_type=Payload)

        assert first == Payload(value="fresh-1")
        assert second == Payload(value="fresh-2")
