import os
from collections.abc import Awaitable, Callable, Sequence
from logging import Logger
from typing import TYPE_CHECKING, Any

from fastmcp.utilities.logging import get_logger
from githubkit import GitHub as GitHubKit
from githubkit import UnauthAuthStrategy
from githubkit.auth.token import TokenAuthStrategy
from githubkit.exception import GitHubException as GitHubKitGitHubException
from githubkit.exception import RequestFailed as GitHubKitRequestFailed
from githubkit.response import Response as GitHubKitResponse
from githubkit.retry import RetryChainDecision, RetryRateLimit, RetryServerError
from githubkit.versions.v2022_11_28.models import ContentFile as GitHubKitContentFile
from pydantic import BaseModel

from repo_function_analyzer.clients.errors.github import (
    AccessDeniedError,
    ResourceNotFoundError,
    ResourceTypeMismatchError,
    TransientTransportError,
)
from repo_function_analyzer.clients.models.github import FileContent, TreeItem

if TYPE_CHECKING:
    from githubkit.versions.v2022_11_28.models import FullRepository as GitHubKitFullRepository
    from githubkit.versions.v2022_11_28.models import GitTree as GitHubKitGitTree

NOT_FOUND_ERROR = 404
ACCESS_DENIED_ERROR = 403

GITHUBKIT_RESPONSE_TYPE = BaseModel | Sequence[BaseModel]


def extract_response[T: GITHUBKIT_RESPONSE_TYPE](response: GitHubKitResponse[T], /) -> T:
    """The parsed body of a githubkit response."""

    return response.parsed_data


def get_github_token() -> str | None:
    env_vars: list[str] = ["GITHUB_TOKEN", "GITHUB_PERSONAL_ACCESS_TOKEN"]
    for env_var in env_vars:
        if token := os.environ.get(env_var):
            return token
    return None


def get_githubkit_client() -> GitHubKit[Any]:
    retry_chain = RetryChainDecision(RetryServerError(), RetryRateLimit(max_retry=3))

    if token := get_github_token():
        return GitHubKit[TokenAuthStrategy](auth=TokenAuthStrategy(token=token), auto_retry=retry_chain)

    # Public repositories can be browsed without a token, at a lower rate limit.
    return GitHubKit[UnauthAuthStrategy](auth=UnauthAuthStrategy(), auto_retry=retry_chain)


class GitHubRepositoryClient:
    """Reads repository listings and file contents from GitHub."""

    githubkit_client: GitHubKit[Any]
    logger: Logger

    log_requests: bool
    log_responses: bool
    log_on_error: bool

    def __init__(
        self,
        githubkit_client: GitHubKit[Any] | None = None,
        logger: Logger | None = None,
        log_requests: bool = True,
        log_responses: bool = False,
        log_on_error: bool = True,
    ):
        self.githubkit_client = githubkit_client or get_githubkit_client()
        self.logger = logger or get_logger(__name__)
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.log_on_error = log_on_error

    def _get_loggers(
        self, log_request: bool | None = None, log_response: bool | None = None, log_on_error: bool | None = None
    ) -> tuple[Callable[[str], Any], Callable[[str], Any], Callable[[str], Any]]:
        request_logger = self.logger.info if log_request or self.log_requests else self.logger.debug
        response_logger = self.logger.info if log_response or self.log_responses else self.logger.debug
        error_logger = self.logger.error if log_on_error or self.log_on_error else self.logger.debug
        return request_logger, response_logger, error_logger

    async def _perform_rest_request[T: GITHUBKIT_RESPONSE_TYPE](
        self,
        action: str,
        resource: str,
        log_request: bool | None = None,
        log_response: bool | None = None,
        log_on_error: bool | None = None,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> T:
        """Perform a request and extract the response.

        Args:
            action: The action being performed.
            resource: A readable name for the resource being requested, used in error messages.
            log_request: Whether to log the request.
            log_response: Whether to log the response.
            log_on_error: Whether to log on error.

        Raises:
            ResourceNotFoundError: If the resource is not found.
            AccessDeniedError: If GitHub refuses the request (private repository or rate limit).
            TransientTransportError: If the request fails for any other reason.
        """

        request_logger, response_logger, error_logger = self._get_loggers(
            log_request=log_request, log_response=log_response, log_on_error=log_on_error
        )

        request_logger(f"{action}: {resource}")

        try:
            response: GitHubKitResponse[T] = await method(**request_args)
        except GitHubKitRequestFailed as e:
            status_code: int = e.response.status_code

            if status_code == NOT_FOUND_ERROR:
                raise ResourceNotFoundError(action=action, resource=resource) from e

            if status_code == ACCESS_DENIED_ERROR:
                error_logger(f"{action} was refused for {resource}")
                raise AccessDeniedError(action=action, resource=resource) from e

            error_logger(f"{action} failed for {resource} with status {status_code}: {e}")

            raise TransientTransportError(action=action, message=str(e), extra_info={"status_code": str(status_code)}) from e
        except GitHubKitGitHubException as e:
            error_logger(f"{action} failed for {resource}: {e}")

            raise TransientTransportError(action=action, message=str(e)) from e

        extracted_response = extract_response(response)

        response_logger(f"{action} succeeded for {resource}: {extracted_response}")

        return extracted_response

    async def get_default_branch(self, owner: str, repo: str) -> str:
        """Get the default branch declared by a repository."""

        repository: GitHubKitFullRepository = await self._perform_rest_request(
            action="Get repository",
            resource=f"{owner}/{repo}",
            method=self.githubkit_client.rest.repos.async_get,
            owner=owner,
            repo=repo,
        )

        return repository.default_branch

    async def list_tree(self, owner: str, repo: str, ref: str) -> list[TreeItem]:
        """Get the flat, recursive listing of a repository at a ref.

        Args:
            owner: The owner of the repository.
            repo: The name of the repository.
            ref: The branch, tag or commit SHA to list.
        """

        tree: GitHubKitGitTree = await self._perform_rest_request(
            action="Get repository tree",
            resource=f"{owner}/{repo}@{ref}",
            method=self.githubkit_client.rest.git.async_get_tree,
            owner=owner,
            repo=repo,
            tree_sha=ref,
            recursive="1",
        )

        if tree.truncated:
            self.logger.warning(f"The tree of {owner}/{repo}@{ref} was truncated by GitHub, the listing is incomplete.")

        return [TreeItem.from_git_tree_item(git_tree_item=tree_item) for tree_item in tree.tree]

    async def get_content(self, owner: str, repo: str, path: str, ref: str) -> FileContent:
        """Get and decode the content of a file.

        Args:
            owner: The owner of the repository.
            repo: The name of the repository.
            path: The path of the file.
            ref: The branch, tag or commit SHA to read the file from.

        Raises:
            DecodeFailureError: If the content cannot be decoded to text.
        """

        file = await self._perform_rest_request(
            action="Get file",
            resource=f"{owner}/{repo}/{path}@{ref}",
            method=self.githubkit_client.rest.repos.async_get_content,
            owner=owner,
            repo=repo,
            path=path,
            ref=ref,
        )

        if not isinstance(file, GitHubKitContentFile):
            raise ResourceTypeMismatchError(action="Get file", resource=path, expected_type=GitHubKitContentFile, actual_type=type(file))

        return FileContent.from_content_file(content_file=file)
