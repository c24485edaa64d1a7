import asyncio
from logging import Logger
from typing import Protocol

from fastmcp.utilities.logging import get_logger

from repo_function_analyzer.clients.branches import BranchResolver, TreeLister
from repo_function_analyzer.clients.errors.github import ClientError
from repo_function_analyzer.clients.models.github import FileContent, RepositoryRef, RepositorySnapshot
from repo_function_analyzer.clients.repository_cache import CacheKey, RepositoryCache
from repo_function_analyzer.enrichment.client import EnrichmentClient
from repo_function_analyzer.enrichment.models import EnrichmentResult
from repo_function_analyzer.extraction.extractor import StructuralExtractor, compute_dependencies
from repo_function_analyzer.extraction.models import ConstructCandidate, ExtractionResult
from repo_function_analyzer.merger import merge
from repo_function_analyzer.models.records import ConstructRecord
from repo_function_analyzer.models.repository.tree import FileNode, build_file_tree, get_file_extension

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({"js", "jsx", "ts", "tsx"})


def is_supported_source(path: str) -> bool:
    return get_file_extension(path) in SUPPORTED_EXTENSIONS


class RepositoryNotLoadedError(ClientError):
    def __init__(self) -> None:
        super().__init__(message="No repository has been loaded. Load a repository before selecting a file.")


class RepositoryFetcher(TreeLister, Protocol):
    async def get_content(self, owner: str, repo: str, path: str, ref: str) -> FileContent: ...


class FunctionExplorer:
    """A browsing session over one repository at a time.

    `load_repository` resolves the working branch and builds the file tree, `select_file` turns one source file into
    construct records. Listings and file contents are served from the cache while they are fresh.
    """

    repository_client: RepositoryFetcher
    cache: RepositoryCache
    enrichment_client: EnrichmentClient
    extractor: StructuralExtractor
    branch_resolver: BranchResolver
    logger: Logger

    repository: RepositoryRef | None
    file_tree: list[FileNode]

    def __init__(
        self,
        repository_client: RepositoryFetcher,
        cache: RepositoryCache,
        enrichment_client: EnrichmentClient,
        extractor: StructuralExtractor | None = None,
        branch_resolver: BranchResolver | None = None,
        logger: Logger | None = None,
    ):
        self.repository_client = repository_client
        self.cache = cache
        self.enrichment_client = enrichment_client
        self.extractor = extractor or StructuralExtractor()
        self.branch_resolver = branch_resolver or BranchResolver(tree_lister=repository_client)
        self.logger = logger or get_logger(__name__)

        self.repository = None
        self.file_tree = []

    async def load_repository(self, owner: str, repo: str) -> list[FileNode]:
        """Resolve the working branch of a repository and return its file tree.

        Raises:
            AccessDeniedError: If every request for the repository was refused.
            NoResolvableBranchError: If none of the candidate branches could be listed.
        """

        snapshot: RepositorySnapshot = await self.cache.get_or_fetch(
            key=CacheKey(owner=owner, repo=repo),
            fetch_fn=lambda: self.branch_resolver.resolve(owner=owner, repo=repo),
            payload_type=RepositorySnapshot,
        )

        self.repository = RepositoryRef(owner=owner, repo=repo, resolved_branch=snapshot.branch)
        self.file_tree = build_file_tree(snapshot.items)

        self.logger.info(f"Loaded {owner}/{repo} at {snapshot.branch}: {len(snapshot.items)} entries, {len(self.file_tree)} top-level nodes")

        return self.file_tree

    async def get_file(self, path: str) -> FileContent:
        """Return the decoded content of a file of the loaded repository.

        Raises:
            RepositoryNotLoadedError: If no repository has been loaded.
            ResourceNotFoundError: If the file does not exist.
            AccessDeniedError: If the repository is private or the rate limit was exceeded.
            DecodeFailureError: If the file is not text.
        """

        repository: RepositoryRef = self._require_repository()

        return await self.cache.get_or_fetch(
            key=CacheKey(owner=repository.owner, repo=repository.repo, path=path),
            fetch_fn=lambda: self.repository_client.get_content(
                owner=repository.owner, repo=repository.repo, path=path, ref=repository.resolved_branch
            ),
            payload_type=FileContent,
        )

    async def select_file(self, path: str) -> list[ConstructRecord]:
        """Return the construct records of a file of the loaded repository, in the order they appear in the file.

        Files that are not JavaScript or TypeScript sources have no records.
        """

        self._require_repository()

        if not is_supported_source(path):
            self.logger.info(f"Skipping {path}: not a supported source file")
            return []

        file_content: FileContent = await self.get_file(path=path)

        return await self.analyze_source(text=file_content.content, file_path=path)

    async def analyze_file(self, owner: str, repo: str, path: str) -> list[ConstructRecord]:
        """Load the repository unless it is already loaded, then select the file."""

        if self.repository is None or (self.repository.owner, self.repository.repo) != (owner, repo):
            await self.load_repository(owner=owner, repo=repo)

        return await self.select_file(path=path)

    async def analyze_source(self, text: str, file_path: str) -> list[ConstructRecord]:
        """Extract the constructs of a source text and explain each of them concurrently."""

        try:
            extraction: ExtractionResult = self.extractor.extract(text=text, path=file_path)
        except Exception as e:  # noqa: BLE001
            self.logger.exception(f"Failed to analyze {file_path}")
            return [ConstructRecord.analysis_error(file_path=file_path, message=f"Failed to analyze {file_path}: {e}")]

        enrichments: list[EnrichmentResult | None] = await asyncio.gather(
            *[self._enrich(candidate=candidate, text=text, file_path=file_path) for candidate in extraction.candidates]
        )

        records: list[ConstructRecord] = []

        for candidate, enrichment in zip(extraction.candidates, enrichments, strict=True):
            start, end = candidate.raw_span
            records.append(
                merge(
                    candidate=candidate,
                    enrichment=enrichment,
                    dependencies=compute_dependencies(candidate=candidate, text=text, imports=extraction.imports),
                    file_path=file_path,
                    code=text[start:end],
                )
            )

        degraded: int = sum(1 for enrichment in enrichments if enrichment is not None and enrichment.is_degraded)

        self.logger.info(f"Analyzed {file_path}: {len(records)} records, {degraded} with degraded explanations")

        return records

    async def _enrich(self, candidate: ConstructCandidate, text: str, file_path: str) -> EnrichmentResult | None:
        if candidate.is_error:
            return None

        start, end = candidate.raw_span

        return await self.enrichment_client.enrich(source_slice=text[start:end], name=candidate.name, file_path=file_path)

    def _require_repository(self) -> RepositoryRef:
        if self.repository is None:
            raise RepositoryNotLoadedError

        return self.repository
