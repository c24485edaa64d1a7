"""Combining extracted structure, generated explanations and computed dependencies into construct records."""

from collections.abc import Iterable

from repo_function_analyzer.enrichment.models import DEFAULT_RETURN_DESCRIPTION, EnrichmentResult, is_informative
from repo_function_analyzer.extraction.models import ConstructCandidate, ConstructDependencies
from repo_function_analyzer.models.records import ConstructRecord, RecordDependencies


def heuristic_label(candidate: ConstructCandidate) -> str:
    if candidate.kind == "class":
        return "Class"
    if candidate.flags.is_getter:
        return "Getter"
    if candidate.flags.is_setter:
        return "Setter"
    return "Function"


def heuristic_type(candidate: ConstructCandidate) -> str:
    """A type derived from the construct's shape, e.g. `getter` or `async arrow function`."""

    if candidate.kind == "class":
        return "class"
    if candidate.flags.is_getter:
        return "getter"
    if candidate.flags.is_setter:
        return "setter"
    if candidate.kind == "hookBinding":
        return "hook binding"

    base: str = "method" if candidate.kind == "method" else "arrow function" if candidate.flags.is_arrow else "function"

    return f"async {base}" if candidate.flags.is_async else base


def _union(*sequences: Iterable[str]) -> list[str]:
    merged: list[str] = []
    for sequence in sequences:
        merged.extend(item for item in sequence if item not in merged)
    return merged


def merge(
    candidate: ConstructCandidate,
    enrichment: EnrichmentResult | None,
    dependencies: ConstructDependencies,
    file_path: str,
    code: str = "",
) -> ConstructRecord:
    """Build the record for one construct.

    Generated text replaces the heuristic description, return description and type only when it says something.
    Dependencies found in the source come first, followed by any extra ones the explanation named.
    """

    if candidate.is_error:
        message: str = candidate.error or "Unknown error"
        return ConstructRecord(
            name=candidate.name,
            kind="error",
            type="error",
            file_path=file_path,
            code=code,
            description=message,
            return_description=DEFAULT_RETURN_DESCRIPTION,
            error=message,
        )

    enrichment = enrichment or EnrichmentResult()

    description: str = f"{heuristic_label(candidate)} found in {file_path}"
    if is_informative(enrichment.description):
        description = enrichment.description

    return ConstructRecord(
        name=candidate.name,
        kind=candidate.kind,
        type=enrichment.type if is_informative(enrichment.type) else heuristic_type(candidate),
        file_path=file_path,
        code=code,
        description=description,
        parameters=candidate.parameters,
        parameter_descriptions=enrichment.parameter_descriptions or list(candidate.parameters),
        return_description=enrichment.return_description
        if is_informative(enrichment.return_description)
        else DEFAULT_RETURN_DESCRIPTION,
        security_considerations=enrichment.security_considerations,
        async_behavior=enrichment.async_behavior,
        error_handling=enrichment.error_handling,
        dependencies=RecordDependencies(
            imports=_union(dependencies.imports, enrichment.dependencies.imports),
            internal_calls=[
                call for call in _union(dependencies.internal_calls, enrichment.dependencies.internal_calls) if call != candidate.name
            ],
            external_calls=_union(dependencies.external_calls, enrichment.dependencies.external_calls),
        ),
        is_async=candidate.flags.is_async,
        is_exported=candidate.flags.is_exported,
        is_arrow=candidate.flags.is_arrow,
        is_getter=candidate.flags.is_getter,
        is_setter=candidate.flags.is_setter,
        superclass=candidate.superclass,
        interfaces=candidate.interfaces,
        methods=candidate.methods,
        error=enrichment.degraded_reason,
    )
