from collections.abc import Iterator, Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from repo_function_analyzer.clients.models.github import TreeItem, TreeItemType

FileNodeKind = Literal["file", "directory"]


def get_file_extension(file_path: str) -> str | None:
    file_name = file_path.split("/")[-1]
    if "." not in file_name:
        return None
    return file_name.split(".")[-1].lower()


def get_path_parts(path: str) -> list[str]:
    return [part for part in path.split("/") if part]


def kind_from_item_type(item_type: TreeItemType) -> FileNodeKind:
    # Submodules ("commit") are shown as directories that cannot be expanded.
    return "file" if item_type == "blob" else "directory"


class FileNode(BaseModel):
    """A file or directory of a repository. Directories hold their children in listing order."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="The last segment of the path.")
    path: str = Field(description="The '/'-delimited path of the node, unique within the repository.")
    kind: FileNodeKind = Field(description="Whether the node is a file or a directory.")
    children: tuple["FileNode", ...] = Field(default=(), description="The children of a directory. Always empty for files.")

    @property
    def is_file(self) -> bool:
        return self.kind == "file"

    def walk(self) -> Iterator["FileNode"]:
        yield self
        for child in self.children:
            yield from child.walk()


class _NodeBuilder:
    """Mutable stand-in for a FileNode while the listing is still being linked."""

    name: str
    path: str
    kind: FileNodeKind
    children: list["_NodeBuilder"]

    def __init__(self, name: str, path: str, kind: FileNodeKind):
        self.name = name
        self.path = path
        self.kind = kind
        self.children = []

    def add_child(self, child: "_NodeBuilder") -> None:
        # A node that something lives under is a directory, whatever the listing claimed.
        self.kind = "directory"
        self.children.append(child)

    def build(self) -> FileNode:
        return FileNode(
            name=self.name,
            path=self.path,
            kind=self.kind,
            children=tuple(child.build() for child in self.children),
        )


def build_file_tree(items: Sequence[TreeItem]) -> list[FileNode]:
    """Convert a flat repository listing into its root nodes.

    Directories implied by a path but missing from the listing are synthesized. An item's declared type only
    applies to the node at its full path. Processing the same path more than once never adds a second node.
    """

    nodes: dict[str, _NodeBuilder] = {}
    roots: list[_NodeBuilder] = []

    for item in items:
        parts: list[str] = get_path_parts(item.path)

        for index, part in enumerate(parts):
            path: str = "/".join(parts[: index + 1])

            if path in nodes:
                continue

            is_listed_item: bool = index == len(parts) - 1

            node = _NodeBuilder(name=part, path=path, kind=kind_from_item_type(item.type) if is_listed_item else "directory")
            nodes[path] = node

            if index == 0:
                roots.append(node)
            else:
                nodes["/".join(parts[:index])].add_child(node)

    return [root.build() for root in roots]


def find_node(roots: Sequence[FileNode], path: str) -> FileNode | None:
    """Find the node at `path`, descending one segment at a time."""

    parts: list[str] = get_path_parts(path)

    candidates: Sequence[FileNode] = roots
    found: FileNode | None = None

    for index in range(len(parts)):
        prefix: str = "/".join(parts[: index + 1])

        found = next((node for node in candidates if node.path == prefix), None)

        if found is None:
            return None

        candidates = found.children

    return found
