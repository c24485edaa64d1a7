"""Syntax-tree extraction using tree-sitter grammars for JavaScript and TypeScript."""

import re
from collections.abc import Iterator
from typing import Literal

import tree_sitter_javascript as tsjavascript
import tree_sitter_typescript as tstypescript
from fastmcp.utilities.logging import get_logger
from tree_sitter import Language, Node, Parser, Tree

from repo_function_analyzer.extraction.models import ConstructCandidate, ConstructFlags
from repo_function_analyzer.extraction.source_text import split_parameters

logger = get_logger(__name__)

GrammarName = Literal["javascript", "typescript", "tsx"]

GRAMMARS: dict[GrammarName, Language] = {
    "javascript": Language(tsjavascript.language()),
    "typescript": Language(tstypescript.language_typescript()),
    "tsx": Language(tstypescript.language_tsx()),
}

GRAMMAR_BY_EXTENSION: dict[str, GrammarName] = {
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "ts": "typescript",
    "tsx": "tsx",
}

DEFAULT_GRAMMAR: GrammarName = "tsx"

FUNCTION_DECLARATIONS: frozenset[str] = frozenset({"function_declaration", "generator_function_declaration"})
FUNCTION_VALUES: frozenset[str] = frozenset({"arrow_function", "function_expression", "function", "generator_function"})
CLASS_DECLARATIONS: frozenset[str] = frozenset({"class_declaration", "abstract_class_declaration"})
VARIABLE_DECLARATIONS: frozenset[str] = frozenset({"lexical_declaration", "variable_declaration"})

HOOK_NAME = re.compile(r"^use[A-Z][\w$]*$")
EXTENDS = re.compile(r"\bextends\s+([\w$.]+)")
IMPLEMENTS = re.compile(r"\bimplements\s+(.+)$", re.DOTALL)


class SyntaxTreeParser:
    """Parses source text with the grammar that fits the file extension."""

    _parsers: dict[GrammarName, Parser]

    def __init__(self) -> None:
        self._parsers = {}

    def _get_parser(self, grammar: GrammarName) -> Parser:
        if (parser := self._parsers.get(grammar)) is None:
            parser = Parser(GRAMMARS[grammar])
            self._parsers[grammar] = parser
        return parser

    def parse(self, source_bytes: bytes, extension: str | None = None) -> Tree:
        grammar: GrammarName = GRAMMAR_BY_EXTENSION.get(extension or "", DEFAULT_GRAMMAR)
        return self._get_parser(grammar).parse(source_bytes)


class SyntaxTreeWalker:
    """Collects constructs from a parsed tree. Offsets are reported as character offsets into the text."""

    source_bytes: bytes

    def __init__(self, source_bytes: bytes):
        self.source_bytes = source_bytes

    def text(self, node: Node | None) -> str:
        if node is None:
            return ""
        return self.source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def offset(self, byte_offset: int) -> int:
        return len(self.source_bytes[:byte_offset].decode("utf-8", errors="replace"))

    def span(self, node: Node) -> tuple[int, int]:
        return self.offset(node.start_byte), self.offset(node.end_byte)

    @staticmethod
    def has_token(node: Node, token: str) -> bool:
        return any(child.type == token for child in node.children)

    @staticmethod
    def is_exported(node: Node) -> bool:
        return node.parent is not None and node.parent.type == "export_statement"

    @staticmethod
    def statement_node(node: Node) -> Node:
        """The export statement wrapping a declaration, or the declaration itself."""
        if node.parent is not None and node.parent.type == "export_statement":
            return node.parent
        return node

    def parameters(self, function_node: Node) -> list[str]:
        if (single := function_node.child_by_field_name("parameter")) is not None:
            return [self.text(single)]

        if (parameters := function_node.child_by_field_name("parameters")) is None:
            return []

        return split_parameters(self.text(parameters).strip()[1:-1])

    def visit(self, node: Node) -> list[ConstructCandidate]:
        if node.type in FUNCTION_DECLARATIONS:
            return [self.function_declaration(node)]
        if node.type in VARIABLE_DECLARATIONS:
            return list(self.variable_declaration(node))
        if node.type in CLASS_DECLARATIONS:
            return [self.class_declaration(node)]
        if node.type == "method_definition" and (candidate := self.method_definition(node)) is not None:
            return [candidate]
        return []

    def walk(self, node: Node) -> Iterator[ConstructCandidate]:
        try:
            yield from self.visit(node)
        except Exception as e:  # noqa: BLE001
            logger.exception(f"Failed to analyze {node.type} at byte {node.start_byte}")
            yield ConstructCandidate.failed(raw_span=self.span(node), message=f"Error analyzing {node.type}: {e}")

        for child in node.children:
            yield from self.walk(child)

    def function_declaration(self, node: Node) -> ConstructCandidate:
        return ConstructCandidate(
            raw_span=self.span(self.statement_node(node)),
            kind="function",
            name=self.text(node.child_by_field_name("name")),
            parameters=self.parameters(node),
            flags=ConstructFlags(is_async=self.has_token(node, "async"), is_exported=self.is_exported(node)),
        )

    def variable_declaration(self, node: Node) -> Iterator[ConstructCandidate]:
        statement: Node = self.statement_node(node)

        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue

            name_node: Node | None = declarator.child_by_field_name("name")
            value: Node | None = declarator.child_by_field_name("value")

            if name_node is None or value is None or name_node.type != "identifier":
                continue

            if value.type in FUNCTION_VALUES:
                yield ConstructCandidate(
                    raw_span=self.span(statement),
                    kind="function",
                    name=self.text(name_node),
                    parameters=self.parameters(value),
                    flags=ConstructFlags(
                        is_async=self.has_token(value, "async"),
                        is_exported=self.is_exported(node),
                        is_arrow=value.type == "arrow_function",
                    ),
                )
            elif value.type == "call_expression" and HOOK_NAME.match(self.text(value.child_by_field_name("function"))):
                yield ConstructCandidate(
                    raw_span=self.span(statement),
                    kind="hookBinding",
                    name=self.text(name_node),
                    parameters=split_parameters(self.text(value.child_by_field_name("arguments")).strip()[1:-1]),
                    flags=ConstructFlags(is_exported=self.is_exported(node)),
                )

    def class_declaration(self, node: Node) -> ConstructCandidate:
        heritage_text: str = " ".join(self.text(child) for child in node.children if child.type == "class_heritage")

        superclass: str | None = None
        interfaces: list[str] = []

        if extends := EXTENDS.search(heritage_text):
            superclass = extends.group(1)

        if implements := IMPLEMENTS.search(heritage_text):
            interfaces = [interface.strip() for interface in split_parameters(implements.group(1)) if interface.strip()]

        methods: list[str] = []

        if (body := node.child_by_field_name("body")) is not None:
            for member in body.named_children:
                if member.type not in {"method_definition", "abstract_method_signature"}:
                    continue
                visibility: str = next(
                    (self.text(child) for child in member.children if child.type == "accessibility_modifier"), "public"
                )
                static: str = " static" if self.has_token(member, "static") else ""
                methods.append(f"{visibility}{static} {self.text(member.child_by_field_name('name'))}")

        return ConstructCandidate(
            raw_span=self.span(self.statement_node(node)),
            kind="class",
            name=self.text(node.child_by_field_name("name")),
            flags=ConstructFlags(is_exported=self.is_exported(node)),
            superclass=superclass,
            interfaces=interfaces,
            methods=methods,
        )

    def method_definition(self, node: Node) -> ConstructCandidate | None:
        """Class methods only. Static and computed-name methods are skipped."""

        if node.parent is None or node.parent.type != "class_body":
            return None

        name_node: Node | None = node.child_by_field_name("name")

        if name_node is None or name_node.type == "computed_property_name" or self.has_token(node, "static"):
            return None

        is_getter: bool = self.has_token(node, "get")
        is_setter: bool = self.has_token(node, "set")

        return ConstructCandidate(
            raw_span=self.span(node),
            kind="accessor" if is_getter or is_setter else "method",
            name=self.text(name_node),
            parameters=self.parameters(node),
            flags=ConstructFlags(is_async=self.has_token(node, "async"), is_getter=is_getter, is_setter=is_setter),
        )


def extract_with_syntax_tree(tree: Tree, source_bytes: bytes) -> list[ConstructCandidate]:
    """Collect constructs from a tree in document order."""

    return list(SyntaxTreeWalker(source_bytes=source_bytes).walk(tree.root_node))
