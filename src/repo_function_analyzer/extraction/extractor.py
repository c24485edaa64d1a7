from logging import Logger

from fastmcp.utilities.logging import get_logger
from tree_sitter import Tree

from repo_function_analyzer.extraction.models import (
    ConstructCandidate,
    ConstructDependencies,
    ExtractionResult,
    ExtractionStrategy,
    ImportStatement,
)
from repo_function_analyzer.extraction.patterns import extract_with_patterns
from repo_function_analyzer.extraction.source_text import (
    extract_body,
    find_external_calls,
    find_internal_calls,
    parse_imports,
)
from repo_function_analyzer.extraction.syntax_tree import SyntaxTreeParser, extract_with_syntax_tree
from repo_function_analyzer.models.repository.tree import get_file_extension


def compute_dependencies(candidate: ConstructCandidate, text: str, imports: list[ImportStatement]) -> ConstructDependencies:
    """Work out what a construct calls and which of the file's imports it uses."""

    if candidate.is_error:
        return ConstructDependencies()

    start, end = candidate.raw_span
    span_text: str = text[start:end]
    body: str = extract_body(span_text)

    internal_calls: list[str] = find_internal_calls(body, own_name=candidate.name)

    used_imports: list[str] = [
        import_statement.path
        for import_statement in imports
        if import_statement.identifier and (import_statement.identifier in span_text or import_statement.identifier in body)
    ]

    imported_bindings: set[str] = {binding for import_statement in imports for binding in import_statement.bindings}

    return ConstructDependencies(
        imports=used_imports,
        internal_calls=internal_calls,
        external_calls=find_external_calls(body, bindings=imported_bindings),
    )


class StructuralExtractor:
    """Finds function-like and class-like constructs in a source file.

    A full syntax tree is used when the file parses cleanly. Files with syntax errors, partial files and dialects
    the grammar does not understand go through the pattern fallback instead.
    """

    parser: SyntaxTreeParser
    logger: Logger

    def __init__(self, parser: SyntaxTreeParser | None = None, logger: Logger | None = None):
        self.parser = parser or SyntaxTreeParser()
        self.logger = logger or get_logger(__name__)

    def _parse(self, source_bytes: bytes, path: str | None) -> Tree | None:
        extension: str | None = get_file_extension(path) if path else None

        try:
            tree: Tree = self.parser.parse(source_bytes, extension=extension)
        except (ValueError, RuntimeError) as e:
            self.logger.warning(f"Could not parse {path or 'source'}, using pattern extraction: {e}")
            return None

        if tree.root_node.has_error:
            self.logger.info(f"Parse errors in {path or 'source'}, using pattern extraction")
            return None

        return tree

    def extract(self, text: str, path: str | None = None) -> ExtractionResult:
        """Return the constructs of `text` in discovery order along with the file's imports."""

        imports: list[ImportStatement] = parse_imports(text)

        source_bytes: bytes = text.encode("utf-8")

        strategy: ExtractionStrategy
        candidates: list[ConstructCandidate]

        if (tree := self._parse(source_bytes, path)) is not None:
            strategy = "syntax_tree"
            candidates = extract_with_syntax_tree(tree, source_bytes)
        else:
            strategy = "patterns"
            candidates = extract_with_patterns(text, logger=self.logger)

        failures: int = sum(1 for candidate in candidates if candidate.is_error)

        self.logger.info(
            f"Extracted {len(candidates)} constructs ({failures} failed) and {len(imports)} imports "
            f"from {path or 'source'} using {strategy}"
        )

        return ExtractionResult(candidates=candidates, imports=imports, strategy=strategy)
