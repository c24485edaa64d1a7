from collections.abc import Callable
from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidatorFunctionWrapHandler, WrapValidator
from pydantic.alias_generators import to_camel
from pydantic.json_schema import SkipJsonSchema

DEFAULT_TYPE = "Unknown"
DEFAULT_RETURN_DESCRIPTION = "Unknown"
ANALYSIS_FAILED = "Analysis failed"

PLACEHOLDER_VALUES: frozenset[str] = frozenset({"", DEFAULT_TYPE, ANALYSIS_FAILED})


def or_default(default_factory: Callable[[], Any]) -> WrapValidator:
    """Replace a missing, null or mistyped value with the field's default instead of failing validation."""

    def validator(value: Any, handler: ValidatorFunctionWrapHandler) -> Any:  # pyright: ignore[reportAny]
        if value is None:
            return default_factory()
        try:
            return handler(value)
        except ValidationError:
            return default_factory()

    return WrapValidator(validator)


def _only_strings(value: Any) -> list[str]:  # pyright: ignore[reportAny]
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]  # pyright: ignore[reportUnknownVariableType]


def _strings_and_objects(value: Any) -> list[str | dict[str, Any]]:  # pyright: ignore[reportAny]
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str | dict)]  # pyright: ignore[reportUnknownVariableType]


StringList = Annotated[list[str], WrapValidator(lambda value, _: _only_strings(value))]  # pyright: ignore[reportUnknownLambdaType]


class EnrichmentDependencies(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    imports: StringList = Field(default_factory=list, description="Modules the code imports or relies on.")
    internal_calls: StringList = Field(default_factory=list, description="Functions called by the code.")
    external_calls: StringList = Field(default_factory=list, description="Calls made to imported modules or external services.")


class EnrichmentResult(BaseModel):
    """A natural-language explanation of one construct.

    Every field always holds a value of its declared type: anything missing or mistyped in a generated response is
    replaced with the field's default rather than rejecting the whole response.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    description: Annotated[str, or_default(lambda: "")] = Field(default="", description="What the code does and why.")
    type: Annotated[str, or_default(lambda: DEFAULT_TYPE)] = Field(
        default=DEFAULT_TYPE, description="The kind of construct, for example 'React Component', 'Utility Function' or 'Service Class'."
    )
    parameter_descriptions: Annotated[
        list[str | dict[str, Any]], WrapValidator(lambda value, _: _strings_and_objects(value))  # pyright: ignore[reportUnknownLambdaType]
    ] = Field(default_factory=list, description="One entry per parameter, as text or as an object with name, type and description.")
    return_description: Annotated[str, or_default(lambda: DEFAULT_RETURN_DESCRIPTION)] = Field(
        default=DEFAULT_RETURN_DESCRIPTION, description="What the code returns."
    )
    security_considerations: Annotated[str | None, or_default(lambda: None)] = Field(
        default=None, description="Security concerns, if any."
    )
    async_behavior: Annotated[str | None, or_default(lambda: None)] = Field(
        default=None, description="How the code behaves asynchronously, if it does."
    )
    error_handling: Annotated[str | None, or_default(lambda: None)] = Field(
        default=None, description="How the code handles errors, if it does."
    )
    dependencies: Annotated[EnrichmentDependencies, or_default(EnrichmentDependencies)] = Field(
        default_factory=EnrichmentDependencies, description="What the code depends on."
    )

    degraded_reason: SkipJsonSchema[str | None] = Field(default=None, exclude=True)

    @property
    def is_degraded(self) -> bool:
        return self.degraded_reason is not None

    @classmethod
    def reconcile(cls, data: Any) -> Self:  # pyright: ignore[reportAny]
        """Build a result from parsed response data of any shape."""

        if not isinstance(data, dict):
            return cls.degraded(reason=f"expected a JSON object, received {type(data).__name__}")  # pyright: ignore[reportAny]

        known_fields: dict[str, Any] = {}

        for name, field_info in cls.model_fields.items():
            if name == "degraded_reason":
                continue
            for key in (field_info.alias, name):
                if key is not None and key in data:
                    known_fields[name] = data[key]
                    break

        return cls.model_validate(known_fields)

    @classmethod
    def degraded(cls, reason: str) -> Self:
        """The complete default result for a construct whose enrichment could not be obtained."""

        return cls(
            description=f"{ANALYSIS_FAILED}: {reason}",
            type=DEFAULT_TYPE,
            return_description=ANALYSIS_FAILED,
            degraded_reason=reason,
        )


def is_informative(value: str | None) -> bool:
    """Whether a generated text field says more than the schema default."""

    return value is not None and value.strip() not in PLACEHOLDER_VALUES
