"""Pattern-matching extraction for sources that do not parse.

Each pattern family recognises the header of one shape of construct. Headers are extended to the end of the
construct's block, several families matching the same construct are collapsed into the most specific one, and
every surviving match is analysed on its own so one bad match cannot sink the rest.
"""

import re
from logging import Logger
from typing import NamedTuple

from fastmcp.utilities.logging import get_logger

from repo_function_analyzer.extraction.models import ConstructCandidate, ConstructFlags, ConstructKind
from repo_function_analyzer.extraction.source_text import (
    extract_body,
    find_block_end,
    find_class_member_signatures,
    find_statement_end,
    split_parameters,
)

logger = get_logger(__name__)

EXPORT = r"(?:export\s+(?:default\s+)?)?"


class PatternFamily(NamedTuple):
    name: str
    kind: ConstructKind
    pattern: re.Pattern[str]


PATTERN_FAMILIES: tuple[PatternFamily, ...] = (
    PatternFamily(
        name="component",
        kind="function",
        pattern=re.compile(
            EXPORT + r"(?:const|let|var)\s+([\w$]+)\s*(?::[^=]+)?=\s*(?:React\.)?(?:memo\s*)?\(?\s*(\(?\s*props\s*\)?|\(?\{[^}]*\}\)?)\s*=>\s*\{?"
        ),
    ),
    PatternFamily(
        name="function_declaration",
        kind="function",
        pattern=re.compile(EXPORT + r"(?:async\s+)?function\s*\*?\s*([\w$]+)\s*(?:<[^>(]*>)?\(([^)]*)\)"),
    ),
    PatternFamily(
        name="class_declaration",
        kind="class",
        pattern=re.compile(
            EXPORT + r"(?:abstract\s+)?class\s+([\w$]+)(?:\s*<[^>{]*>)?(?:\s+extends\s+([\w$.]+)(?:<[^>{]*>)?)?"
            r"(?:\s+implements\s+([\w$.,\s<>]+?))?\s*\{"
        ),
    ),
    PatternFamily(
        name="function_expression",
        kind="function",
        pattern=re.compile(
            EXPORT + r"(?:const|let|var)\s+([\w$]+)\s*(?::[^=]+)?=\s*(?:async\s*)?"
            r"(?:function\s*\*?\s*[\w$]*\s*\(([^)]*)\)|\(([^)]*)\)\s*(?::\s*[^=]+)?=>|([\w$]+)\s*=>)"
        ),
    ),
    PatternFamily(
        name="method",
        kind="method",
        pattern=re.compile(
            r"^[ \t]*(?:(?:public|private|protected|static|readonly|override|abstract)\s+)*(?:async\s+)?\*?([\w$]+)\s*"
            r"(?:<[^>(]*>)?\(([^)]*)\)\s*(?::\s*[^{;=]+)?\{",
            re.MULTILINE,
        ),
    ),
    PatternFamily(
        name="accessor",
        kind="accessor",
        pattern=re.compile(r"(?:static\s+)?\b(get|set)\s+([\w$]+)\s*\(([^)]*)\)\s*(?::\s*[^{;=]+)?\{"),
    ),
    PatternFamily(
        name="hook_binding",
        kind="hookBinding",
        pattern=re.compile(EXPORT + r"(?:const|let|var)\s+([\w$]+)\s*=\s*(use[A-Z][\w$]*)\s*(?:<[^>(]*>)?\("),
    ),
)

# Name extraction tries these in order and takes the first hit, however long the other hits are.
NAME_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:\bfunction\s*\*?\s*|\b(?:const|let|var|class)\s+)([\w$]+)"),
    re.compile(r"([\w$]+)\s*="),
    re.compile(r"\b(?:get|set)\s+([\w$]+)"),
    re.compile(r"([\w$]+)\s*\("),
)

NOT_A_METHOD_NAME: frozenset[str] = frozenset(
    {"if", "for", "while", "switch", "catch", "function", "return", "with", "else", "do", "try", "finally", "get", "set"}
)

# Lower is more specific: class > method > function > arrow.
KIND_RANK: dict[str, int] = {"class": 0, "method": 1, "accessor": 1, "function": 2, "hookBinding": 2}
ARROW_RANK = 3

BLOCK_AFTER_HEADER = re.compile(r"\s*(?::\s*[^{;=\n]+)?\{")
PARAMETERS = re.compile(r"\(([^)]*)\)")
SINGLE_ARROW_PARAMETER = re.compile(r"([\w$]+)\s*=>")


def extract_name(header: str) -> str:
    for name_pattern in NAME_PATTERNS:
        if (match := name_pattern.search(header)) and match.group(1):
            return match.group(1)
    return ""


class PatternMatch(NamedTuple):
    family: PatternFamily
    header_start: int
    header_end: int
    name: str
    match: re.Match[str]

    @property
    def header(self) -> str:
        return self.match.group(0)

    @property
    def is_arrow(self) -> bool:
        return "=>" in self.header

    @property
    def rank(self) -> int:
        if self.family.kind == "function" and self.is_arrow:
            return ARROW_RANK
        return KIND_RANK[self.family.kind]

    def overlaps(self, other: "PatternMatch") -> bool:
        return self.header_start < other.header_end and other.header_start < self.header_end


def find_pattern_matches(text: str) -> list[PatternMatch]:
    matches: list[PatternMatch] = []

    for family in PATTERN_FAMILIES:
        for match in family.pattern.finditer(text):
            name: str = extract_name(match.group(0))

            if family.kind == "method" and (not name or {name, match.group(1)} & NOT_A_METHOD_NAME):
                continue

            if family.kind == "accessor":
                name = match.group(2)

            matches.append(PatternMatch(family=family, header_start=match.start(), header_end=match.end(), name=name, match=match))

    return matches


def deduplicate_matches(matches: list[PatternMatch]) -> list[PatternMatch]:
    """Collapse matches of the same construct, keeping the most specific family. Result is in text order."""

    kept: list[PatternMatch] = []

    for candidate in sorted(matches, key=lambda match: (match.header_start, match.rank)):
        duplicate_index: int | None = next(
            (index for index, existing in enumerate(kept) if existing.name == candidate.name and existing.overlaps(candidate)),
            None,
        )

        if duplicate_index is None:
            kept.append(candidate)
        elif candidate.rank < kept[duplicate_index].rank:
            kept[duplicate_index] = candidate

    return sorted(kept, key=lambda match: match.header_start)


def construct_end(text: str, pattern_match: PatternMatch) -> int:
    """Where the construct introduced by the header ends."""

    header: str = pattern_match.header

    if pattern_match.family.kind == "hookBinding":
        # Start at the opening parenthesis of the hook call.
        end: int = find_statement_end(text, pattern_match.header_end - 1)
        return end + 1 if text.startswith(";", end) else end

    if header.rstrip().endswith("{"):
        return find_block_end(text, pattern_match.header_start + header.rindex("{"))

    if block := BLOCK_AFTER_HEADER.match(text, pattern_match.header_end):
        return find_block_end(text, block.end() - 1)

    if pattern_match.is_arrow:
        # The expression may start on a later line than the arrow.
        expression_start: int = len(text) - len(text[pattern_match.header_end :].lstrip())
        return find_statement_end(text, expression_start)

    return pattern_match.header_end


def _parameters(pattern_match: PatternMatch) -> list[str]:
    header: str = pattern_match.header

    if pattern_match.family.kind == "class":
        return []

    if parameters := PARAMETERS.search(header):
        return split_parameters(parameters.group(1))

    if pattern_match.is_arrow and (single := SINGLE_ARROW_PARAMETER.search(header)):
        return [single.group(1)]

    return []


def analyze_match(text: str, pattern_match: PatternMatch) -> ConstructCandidate:
    header: str = pattern_match.header
    kind: ConstructKind = pattern_match.family.kind
    end: int = construct_end(text, pattern_match)

    flags = ConstructFlags(
        is_async=re.search(r"\basync\b", header) is not None,
        is_exported=re.match(r"\s*export\b", header) is not None,
        is_arrow=kind == "function" and pattern_match.is_arrow,
        is_getter=kind == "accessor" and pattern_match.match.group(1) == "get",
        is_setter=kind == "accessor" and pattern_match.match.group(1) == "set",
    )

    superclass: str | None = None
    interfaces: list[str] = []
    methods: list[str] = []

    if kind == "class":
        superclass = pattern_match.match.group(2) or None
        if implemented := pattern_match.match.group(3):
            interfaces = [interface.strip() for interface in implemented.split(",") if interface.strip()]
        methods = find_class_member_signatures(extract_body(text[pattern_match.header_start : end]))

    return ConstructCandidate(
        raw_span=(pattern_match.header_start, end),
        kind=kind,
        name=pattern_match.name,
        parameters=_parameters(pattern_match),
        flags=flags,
        superclass=superclass,
        interfaces=interfaces,
        methods=methods,
    )


def extract_with_patterns(text: str, logger: Logger = logger) -> list[ConstructCandidate]:
    """Find candidate constructs in text that may not parse."""

    matches: list[PatternMatch] = deduplicate_matches(find_pattern_matches(text))

    candidates: list[ConstructCandidate] = []

    for pattern_match in matches:
        try:
            candidates.append(analyze_match(text, pattern_match))
        except Exception as e:  # noqa: BLE001
            logger.exception(f"Failed to analyze {pattern_match.family.name} match {pattern_match.name!r} at {pattern_match.header_start}")
            candidates.append(
                ConstructCandidate.failed(
                    raw_span=(pattern_match.header_start, pattern_match.header_end),
                    message=f"Error analyzing {pattern_match.name or 'construct'}: {e}",
                )
            )

    return candidates
