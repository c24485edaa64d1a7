from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ConstructKind = Literal["function", "class", "method", "accessor", "hookBinding", "error"]

ExtractionStrategy = Literal["syntax_tree", "patterns"]


class ConstructFlags(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_async: bool = False
    is_exported: bool = False
    is_arrow: bool = False
    is_getter: bool = False
    is_setter: bool = False


class ConstructCandidate(BaseModel):
    """A function-like or class-like construct found in a source file."""

    raw_span: tuple[int, int] = Field(description="The start and end offsets of the construct in the file text.")
    kind: ConstructKind
    name: str
    parameters: list[str] = Field(default_factory=list)
    flags: ConstructFlags = Field(default_factory=ConstructFlags)
    superclass: str | None = None
    interfaces: list[str] = Field(default_factory=list, description="The interfaces a class declares it implements.")
    methods: list[str] = Field(default_factory=list, description="Method signatures of a class, as '<visibility>[ static] <name>'.")
    error: str | None = Field(default=None, description="Why the analysis of this construct failed, for error-kind candidates.")

    @property
    def is_error(self) -> bool:
        return self.kind == "error"

    @classmethod
    def failed(cls, raw_span: tuple[int, int], message: str) -> "ConstructCandidate":
        return cls(raw_span=raw_span, kind="error", name="Error", error=message)


class ImportStatement(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str = Field(description="The module path after `from`.")
    bindings: list[str] = Field(default_factory=list, description="The local names the import introduces.")

    @property
    def identifier(self) -> str:
        """The last path segment without its file extension, e.g. `githubService` for `./services/githubService.js`."""
        last_segment: str = self.path.rstrip("/").split("/")[-1]
        for extension in (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"):
            if last_segment.endswith(extension):
                return last_segment.removesuffix(extension)
        return last_segment


class ConstructDependencies(BaseModel):
    imports: list[str] = Field(default_factory=list, description="Import paths the construct refers to.")
    internal_calls: list[str] = Field(default_factory=list, description="Functions the construct calls.")
    external_calls: list[str] = Field(default_factory=list, description="Called functions that come from an import.")


class ExtractionResult(BaseModel):
    candidates: list[ConstructCandidate]
    imports: list[ImportStatement]
    strategy: ExtractionStrategy

    @property
    def import_paths(self) -> list[str]:
        return [import_statement.path for import_statement in self.imports]
