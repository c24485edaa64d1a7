import asyncio
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from pydantic import BaseModel

from repo_function_analyzer.clients.document_store import InMemoryDocumentStore
from repo_function_analyzer.clients.errors.github import ClientError, ResourceNotFoundError
from repo_function_analyzer.clients.models.github import FileContent, TreeItem
from repo_function_analyzer.clients.repository_cache import RepositoryCache
from repo_function_analyzer.enrichment.client import EnrichmentClient

FROZEN_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


class FrozenClock:
    now: datetime

    def __init__(self, now: datetime = FROZEN_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class FakeTextGenerator:
    """Answers every prompt with the same response, or with whatever `respond` returns for the prompt.

    `delay` gives the seconds to wait before answering a prompt. `completed` holds the prompts in the order they were answered.
    """

    prompts: list[str]
    completed: list[str]

    def __init__(
        self,
        response: str = "{}",
        respond: Callable[[str], str] | None = None,
        delay: Callable[[str], float] | None = None,
    ):
        self.response = response
        self.respond = respond
        self.delay = delay
        self.prompts = []
        self.completed = []

    async def generate(self, prompt: str, system_prompt: str | None = None) -> str:
        self.prompts.append(prompt)

        if self.delay is not None:
            await asyncio.sleep(self.delay(prompt))

        self.completed.append(prompt)

        if self.respond is not None:
            return self.respond(prompt)

        return self.response


class FakeRepositoryFetcher:
    """A repository whose branches, listings and files are given up front. Records every call made to it."""

    def __init__(
        self,
        default_branch: str | ClientError | None = "main",
        trees: dict[str, list[TreeItem]] | None = None,
        files: dict[str, str] | None = None,
    ):
        self.default_branch = default_branch
        self.trees = trees or {}
        self.files = files or {}
        self.calls: list[tuple[str, ...]] = []

    async def get_default_branch(self, owner: str, repo: str) -> str:
        self.calls.append(("get_default_branch", owner, repo))

        if isinstance(self.default_branch, ClientError):
            raise self.default_branch

        return self.default_branch or ""

    async def list_tree(self, owner: str, repo: str, ref: str) -> list[TreeItem]:
        self.calls.append(("list_tree", owner, repo, ref))

        if ref not in self.trees:
            raise ResourceNotFoundError(action="Get repository tree", resource=f"{owner}/{repo}@{ref}")

        return self.trees[ref]

    async def get_content(self, owner: str, repo: str, path: str, ref: str) -> FileContent:
        self.calls.append(("get_content", owner, repo, path, ref))

        if path not in self.files:
            raise ResourceNotFoundError(action="Get file", resource=f"{owner}/{repo}/{path}@{ref}")

        content: str = self.files[path]

        return FileContent(path=path, content=content, size=len(content.encode()), sha="0" * 40)

    def calls_to(self, method: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[0] == method]


def tree_items(*paths: str) -> list[TreeItem]:
    """Listing entries for the given paths. Paths ending in `/` are directories."""

    return [TreeItem(path=path.rstrip("/"), type="tree" if path.endswith("/") else "blob") for path in paths]


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def repository_cache(document_store: InMemoryDocumentStore, clock: FrozenClock) -> RepositoryCache:
    return RepositoryCache(document_store=document_store, clock=clock)


@pytest.fixture
def text_generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def enrichment_client(text_generator: FakeTextGenerator) -> EnrichmentClient:
    return EnrichmentClient(text_generator=text_generator)


def handle_exclude_keys(dumped: Any, exclude_keys: list[str] | None) -> Any:  # pyright: ignore[reportAny]
    if not exclude_keys:
        return dumped

    if isinstance(dumped, dict):
        return {key: handle_exclude_keys(value, exclude_keys) for key, value in dumped.items() if key not in exclude_keys}  # pyright: ignore[reportUnknownVariableType]

    if isinstance(dumped, list):
        return [handle_exclude_keys(item, exclude_keys) for item in dumped]  # pyright: ignore[reportUnknownVariableType]

    return dumped


def dump_for_snapshot(
    basemodel: BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any]:
    return handle_exclude_keys(basemodel.model_dump(exclude_none=exclude_none, **dump_kwargs), exclude_keys)


def dump_list_for_snapshot(
    basemodels: Sequence[BaseModel],
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> list[dict[str, Any]]:
    return [dump_for_snapshot(item, exclude_keys=exclude_keys, exclude_none=exclude_none, **dump_kwargs) for item in basemodels]
