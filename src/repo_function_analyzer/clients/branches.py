from collections.abc import Sequence
from logging import Logger
from typing import Protocol

from fastmcp.utilities.logging import get_logger

from repo_function_analyzer.clients.errors.github import AccessDeniedError, ClientError, NoResolvableBranchError
from repo_function_analyzer.clients.models.github import RepositorySnapshot, TreeItem

FALLBACK_BRANCHES: tuple[str, ...] = ("main", "master", "development", "dev")

DEFAULT_BRANCH_LOOKUP = "default branch lookup"


class TreeLister(Protocol):
    async def get_default_branch(self, owner: str, repo: str) -> str: ...

    async def list_tree(self, owner: str, repo: str, ref: str) -> list[TreeItem]: ...


def candidate_branches(default_branch: str | None, fallbacks: Sequence[str] = FALLBACK_BRANCHES) -> list[str]:
    """The declared default branch first, then the fallbacks, without empty or repeated names."""

    candidates: list[str] = []

    for branch in [default_branch, *fallbacks]:
        if branch and branch not in candidates:
            candidates.append(branch)

    return candidates


class BranchResolver:
    """Finds the first branch of a repository whose tree can be listed."""

    tree_lister: TreeLister
    fallbacks: tuple[str, ...]
    logger: Logger

    def __init__(self, tree_lister: TreeLister, fallbacks: Sequence[str] = FALLBACK_BRANCHES, logger: Logger | None = None):
        self.tree_lister = tree_lister
        self.fallbacks = tuple(fallbacks)
        self.logger = logger or get_logger(__name__)

    async def _declared_default_branch(self, owner: str, repo: str, failures: dict[str, ClientError]) -> str | None:
        try:
            return await self.tree_lister.get_default_branch(owner=owner, repo=repo)
        except ClientError as e:
            self.logger.warning(f"Could not read the default branch of {owner}/{repo}, trying the fallback branches: {e}")
            failures[DEFAULT_BRANCH_LOOKUP] = e
            return None

    async def resolve(self, owner: str, repo: str) -> RepositorySnapshot:
        """Resolve the working branch of a repository and return its listing.

        The listing of the winning candidate is returned alongside the branch so it is not fetched twice.

        Raises:
            AccessDeniedError: If every request was refused.
            NoResolvableBranchError: If no candidate branch could be listed for any other reason.
        """

        failures: dict[str, ClientError] = {}

        default_branch: str | None = await self._declared_default_branch(owner=owner, repo=repo, failures=failures)

        candidates: list[str] = candidate_branches(default_branch=default_branch, fallbacks=self.fallbacks)

        for candidate in candidates:
            self.logger.info(f"Trying branch {candidate} of {owner}/{repo}")

            try:
                items: list[TreeItem] = await self.tree_lister.list_tree(owner=owner, repo=repo, ref=candidate)
            except ClientError as e:
                self.logger.warning(f"Branch {candidate} of {owner}/{repo} could not be listed: {e}")
                failures[candidate] = e
                continue

            self.logger.info(f"Resolved {owner}/{repo} to branch {candidate} with {len(items)} entries")

            return RepositorySnapshot(branch=candidate, items=items)

        last_error: ClientError | None = next(reversed(failures.values()), None)

        if failures and all(isinstance(failure, AccessDeniedError) for failure in failures.values()):
            raise AccessDeniedError(
                action="Resolve branch", resource=f"{owner}/{repo}", extra_info={"attempted": ", ".join(failures)}
            ) from last_error

        raise NoResolvableBranchError(
            owner=owner, repo=repo, candidates=candidates, failures={name: type(error).__name__ for name, error in failures.items()}
        ) from last_error
