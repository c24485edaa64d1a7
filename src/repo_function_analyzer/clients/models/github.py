import base64
import binascii
from typing import Literal, Self

from githubkit.versions.v2022_11_28.models import ContentFile as GitHubKitContentFile
from githubkit.versions.v2022_11_28.models import GitTreePropTreeItems as GitHubKitGitTreeItem
from pydantic import BaseModel, ConfigDict, Field

from repo_function_analyzer.clients.errors.github import DecodeFailureError

TreeItemType = Literal["blob", "tree", "commit"]


def decode_content(path: str, content: str, encoding: str = "base64") -> str:
    """Decode the transport-encoded content of a file into text.

    Raises:
        DecodeFailureError: If the encoding is unsupported, the payload is corrupt, or the file is not text.
    """

    if encoding != "base64":
        raise DecodeFailureError(path=path, reason=f"Unsupported encoding {encoding!r}")

    try:
        raw_bytes: bytes = base64.b64decode(content)
    except (binascii.Error, ValueError) as e:
        raise DecodeFailureError(path=path, reason=f"Corrupt base64 payload: {e}") from e

    if b"\x00" in raw_bytes:
        raise DecodeFailureError(path=path, reason="The file appears to be binary")

    try:
        return raw_bytes.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeFailureError(path=path, reason=f"The file is not valid UTF-8: {e.reason}") from e


class TreeItem(BaseModel):
    """An entry of a flat repository listing."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="The '/'-delimited path of the entry.")
    type: TreeItemType = Field(description="The git object type of the entry.")
    size: int | None = Field(default=None, description="The size of the blob in bytes.")

    @classmethod
    def from_git_tree_item(cls, git_tree_item: GitHubKitGitTreeItem) -> Self:
        size = git_tree_item.size if isinstance(git_tree_item.size, int) else None
        return cls(path=git_tree_item.path, type=git_tree_item.type, size=size)  # pyright: ignore[reportArgumentType]


class FileContent(BaseModel):
    """A decoded file."""

    path: str = Field(description="The path of the file.")
    content: str = Field(description="The decoded text of the file.")
    size: int = Field(description="The size of the file in bytes.")
    sha: str = Field(description="The blob SHA of the file.")

    @property
    def name(self) -> str:
        return self.path.split("/")[-1]

    @classmethod
    def from_content_file(cls, content_file: GitHubKitContentFile) -> Self:
        return cls(
            path=content_file.path,
            content=decode_content(path=content_file.path, content=content_file.content, encoding=content_file.encoding),
            size=content_file.size,
            sha=content_file.sha,
        )


class RepositoryRef(BaseModel):
    """A repository and the branch it is read from."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    resolved_branch: str


class RepositorySnapshot(BaseModel):
    """The flat listing of a repository at the branch it was resolved to."""

    branch: str = Field(description="The branch the listing was taken from.")
    items: list[TreeItem] = Field(description="The entries of the repository.")
