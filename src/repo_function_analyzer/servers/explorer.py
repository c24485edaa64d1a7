from logging import Logger
from typing import Any

from fastmcp.server import FastMCP
from fastmcp.tools import Tool
from fastmcp.utilities.logging import get_logger

from repo_function_analyzer.clients.cache import get_cache_backend
from repo_function_analyzer.clients.github import GitHubRepositoryClient
from repo_function_analyzer.clients.repository_cache import RepositoryCache
from repo_function_analyzer.enrichment.client import EnrichmentClient
from repo_function_analyzer.explorer import FunctionExplorer, RepositoryFetcher, is_supported_source
from repo_function_analyzer.extraction.extractor import StructuralExtractor
from repo_function_analyzer.models.records import ConstructRecord
from repo_function_analyzer.models.repository.tree import FileNode
from repo_function_analyzer.sampling.handler import get_text_generator
from repo_function_analyzer.servers.shared.annotations import OWNER, PATH, REPO


class FunctionExplorerServer:
    """Exposes repository browsing and file analysis as MCP tools.

    Every tool call gets its own explorer session. The repository client, cache and enrichment client are shared.
    """

    repository_client: RepositoryFetcher
    cache: RepositoryCache
    enrichment_client: EnrichmentClient
    extractor: StructuralExtractor
    logger: Logger

    def __init__(
        self,
        repository_client: RepositoryFetcher | None = None,
        cache: RepositoryCache | None = None,
        enrichment_client: EnrichmentClient | None = None,
        logger: Logger | None = None,
    ):
        self.logger = logger or get_logger(name=__name__)
        self.repository_client = repository_client or GitHubRepositoryClient(logger=self.logger)
        self.cache = cache or RepositoryCache(document_store=get_cache_backend())
        self.enrichment_client = enrichment_client or EnrichmentClient(text_generator=get_text_generator())
        self.extractor = StructuralExtractor()

    def register_tools(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.load_repository))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.find_source_files))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.analyze_file))

        return fastmcp

    def explorer(self) -> FunctionExplorer:
        return FunctionExplorer(
            repository_client=self.repository_client,
            cache=self.cache,
            enrichment_client=self.enrichment_client,
            extractor=self.extractor,
        )

    async def load_repository(self, owner: OWNER, repo: REPO) -> list[FileNode]:
        """Load a repository and return its file tree. The working branch is the repository's default branch, or
        the first of main, master, development and dev that exists."""

        return await self.explorer().load_repository(owner=owner, repo=repo)

    async def find_source_files(self, owner: OWNER, repo: REPO) -> list[str]:
        """List the paths of the JavaScript and TypeScript files in a repository that can be analyzed."""

        file_tree: list[FileNode] = await self.explorer().load_repository(owner=owner, repo=repo)

        return [node.path for root in file_tree for node in root.walk() if node.is_file and is_supported_source(node.path)]

    async def analyze_file(self, owner: OWNER, repo: REPO, path: PATH) -> list[ConstructRecord]:
        """Find the functions, classes, methods, accessors and hook bindings in a JavaScript or TypeScript file and
        explain each of them: what it does, its parameters, what it returns and what it depends on.

        Files that are not JavaScript or TypeScript return no records."""

        return await self.explorer().analyze_file(owner=owner, repo=repo, path=path)
