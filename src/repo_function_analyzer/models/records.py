from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from repo_function_analyzer.extraction.models import ConstructKind

ANALYSIS_ERROR_NAME = "Analysis Error"


class RecordDependencies(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, serialize_by_alias=True)

    imports: list[str] = Field(default_factory=list)
    internal_calls: list[str] = Field(default_factory=list)
    external_calls: list[str] = Field(default_factory=list)


class ConstructRecord(BaseModel):
    """A construct found in a file together with its explanation. Serialises with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, serialize_by_alias=True)

    name: str
    kind: ConstructKind
    type: str
    file_path: str
    code: str = Field(default="", description="The source text of the construct.")

    description: str
    parameters: list[str] = Field(default_factory=list)
    parameter_descriptions: list[str | dict[str, Any]] = Field(default_factory=list)
    return_description: str
    security_considerations: str | None = None
    async_behavior: str | None = None
    error_handling: str | None = None
    dependencies: RecordDependencies = Field(default_factory=RecordDependencies)

    is_async: bool = False
    is_exported: bool = False
    is_arrow: bool = False
    is_getter: bool = False
    is_setter: bool = False
    superclass: str | None = None
    interfaces: list[str] = Field(default_factory=list)
    methods: list[str] = Field(default_factory=list)

    error: str | None = Field(default=None, description="Why this construct, or the whole file, could not be analysed.")

    @property
    def is_error(self) -> bool:
        return self.kind == "error"

    @classmethod
    def analysis_error(cls, file_path: str, message: str) -> "ConstructRecord":
        """The single record returned for a file that could not be analysed at all."""

        return cls(
            name=ANALYSIS_ERROR_NAME,
            kind="error",
            type="error",
            file_path=file_path,
            description=message,
            return_description="Unknown",
            error=message,
        )
