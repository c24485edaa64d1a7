"""Helpers that read JavaScript-like source text without parsing it."""

import re

from repo_function_analyzer.extraction.models import ImportStatement

IDENTIFIER = r"[A-Za-z_$][\w$]*"

IMPORT_PATTERN = re.compile(r"import\s+(?:type\s+)?(?P<clause>[^;'\"]*?)\s*from\s*['\"](?P<path>[^'\"]+)['\"]", re.DOTALL)

CALL_PATTERN = re.compile(rf"(?<![\w$])(?:new\s+)?({IDENTIFIER})\s*\(")

DIRECT_CALL_PATTERN = re.compile(rf"(?<![\w$.])(?:new\s+)?({IDENTIFIER})\s*\(")

MEMBER_CALL_PATTERN = re.compile(rf"(?<![\w$.])(?P<receiver>{IDENTIFIER})(?P<members>(?:\s*\??\.\s*{IDENTIFIER})+)\s*\(")

# Keywords that are followed by "(" without being calls.
NON_CALL_KEYWORDS: frozenset[str] = frozenset(
    {
        "if",
        "for",
        "while",
        "switch",
        "catch",
        "function",
        "return",
        "typeof",
        "await",
        "yield",
        "with",
        "super",
        "import",
        "async",
        "else",
        "do",
        "in",
        "of",
        "new",
        "delete",
        "void",
        "throw",
        "case",
    }
)

STRING_QUOTES = "'\"`"


def _skip_string(text: str, index: int) -> int:
    """Return the index just past the string literal opening at `index`."""

    quote = text[index]
    index += 1

    while index < len(text):
        character = text[index]
        if character == "\\":
            index += 2
            continue
        if character == quote:
            return index + 1
        if character == "\n" and quote != "`":
            # Unterminated string, stop at the end of the line.
            return index
        index += 1

    return index


def _skip_comment(text: str, index: int) -> int:
    """Return the index just past the comment opening at `index`, or `index` if there is none."""

    if text.startswith("//", index):
        end = text.find("\n", index)
        return len(text) if end == -1 else end

    if text.startswith("/*", index):
        end = text.find("*/", index + 2)
        return len(text) if end == -1 else end + 2

    return index


def find_block_end(text: str, open_index: int) -> int:
    """Return the index just past the `}` that closes the `{` at `open_index`.

    Braces inside strings, template literals and comments are ignored. An unbalanced block runs to the end of the text.
    """

    depth = 0
    index = open_index

    while index < len(text):
        character = text[index]

        if character in STRING_QUOTES:
            index = _skip_string(text, index)
            continue

        if character == "/" and (skipped := _skip_comment(text, index)) != index:
            index = skipped
            continue

        if character == "{":
            depth += 1
        elif character == "}":
            depth -= 1
            if depth == 0:
                return index + 1

        index += 1

    return len(text)


def find_statement_end(text: str, start: int) -> int:
    """Return the index of the end of the expression statement starting at `start`."""

    depth = 0
    index = start

    while index < len(text):
        character = text[index]

        if character in STRING_QUOTES:
            index = _skip_string(text, index)
            continue

        if character in "([{":
            depth += 1
        elif character in ")]}":
            if depth == 0:
                return index
            depth -= 1
        elif character in ";\n" and depth == 0:
            return index

        index += 1

    return len(text)


def extract_body(span_text: str) -> str:
    """The text between the first `{` and the last `}` of a construct, or the expression of a brace-less arrow function."""

    body_start = span_text.find("{")
    body_end = span_text.rfind("}")

    if body_start >= 0 and body_end > body_start:
        return span_text[body_start + 1 : body_end]

    if (arrow := span_text.find("=>")) >= 0:
        return span_text[arrow + 2 :].strip()

    return ""


def find_internal_calls(body: str, own_name: str) -> list[str]:
    """Identifiers immediately followed by `(` in the body, in order of first appearance.

    Recursive calls to the construct itself are left out.
    """

    calls: list[str] = []

    for match in CALL_PATTERN.finditer(body):
        name: str = match.group(1)

        if name == own_name or name in NON_CALL_KEYWORDS or name in calls:
            continue

        calls.append(name)

    return calls


def find_external_calls(body: str, bindings: set[str]) -> list[str]:
    """Calls into imported bindings, in order of first appearance.

    A binding called directly is listed by name, e.g. `fetchJson`. A call on a member of a binding is listed with
    its qualifier, e.g. `axios.get` or `path.posix.join`.
    """

    found: list[tuple[int, str]] = [
        (match.start(1), match.group(1)) for match in DIRECT_CALL_PATTERN.finditer(body) if match.group(1) in bindings
    ]

    for match in MEMBER_CALL_PATTERN.finditer(body):
        receiver: str = match.group("receiver")
        if receiver in bindings:
            members: str = re.sub(r"[\s?]", "", match.group("members"))
            found.append((match.start(), f"{receiver}{members}"))

    calls: list[str] = []

    for _, call in sorted(found):
        if call not in calls:
            calls.append(call)

    return calls


def _parse_import_bindings(clause: str) -> list[str]:
    bindings: list[str] = []

    clause = clause.strip()

    if (open_brace := clause.find("{")) >= 0:
        close_brace = clause.find("}", open_brace)
        named = clause[open_brace + 1 : close_brace if close_brace >= 0 else len(clause)]

        for specifier in named.split(","):
            specifier = specifier.strip().removeprefix("type ").strip()
            if not specifier:
                continue
            local = specifier.split(" as ")[-1].strip()
            if re.fullmatch(IDENTIFIER, local):
                bindings.append(local)

        clause = clause[:open_brace] + (clause[close_brace + 1 :] if close_brace >= 0 else "")

    for part in clause.split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("*"):
            part = part.split(" as ")[-1].strip()
        if re.fullmatch(IDENTIFIER, part):
            bindings.append(part)

    return bindings


def parse_imports(text: str) -> list[ImportStatement]:
    """Find every `import ... from '<path>'` statement, in order."""

    return [
        ImportStatement(path=match.group("path"), bindings=_parse_import_bindings(match.group("clause")))
        for match in IMPORT_PATTERN.finditer(text)
    ]


def split_parameters(parameter_text: str) -> list[str]:
    """Split a parameter list on top-level commas, keeping destructuring patterns and defaults whole."""

    parameters: list[str] = []
    depth = 0
    current: list[str] = []

    for character in parameter_text:
        if character in "([{<":
            depth += 1
        elif character in ")]}>" and depth > 0:
            depth -= 1
        elif character == "," and depth == 0:
            parameters.append("".join(current))
            current = []
            continue
        current.append(character)

    parameters.append("".join(current))

    return [parameter.strip() for parameter in parameters if parameter.strip()]


CLASS_MEMBER_PATTERN = re.compile(
    r"\s*(?:(?P<visibility>public|private|protected)\s+)?(?P<static>static\s+)?(?:(?:async|override|readonly|abstract)\s+)*"
    rf"(?:(?:get|set)\s+)?\*?(?P<name>{IDENTIFIER})\s*(?:<[^>]*>)?\([^)]*\)\s*(?::[^{{;]+)?\{{"
)


def find_class_member_signatures(class_body: str) -> list[str]:
    """Method signatures declared directly in a class body, as `<visibility>[ static] <name>`."""

    signatures: list[str] = []
    depth = 0
    index = 0
    at_member_start = True

    while index < len(class_body):
        if at_member_start and depth == 0 and (match := CLASS_MEMBER_PATTERN.match(class_body, index)):
            name: str = match.group("name")
            if name not in NON_CALL_KEYWORDS:
                visibility: str = match.group("visibility") or "public"
                static: str = " static" if match.group("static") else ""
                signatures.append(f"{visibility}{static} {name}")
            # Continue from the member's opening brace.
            index = match.end() - 1

        character = class_body[index]

        if character in STRING_QUOTES:
            index = _skip_string(class_body, index)
            at_member_start = False
            continue

        if character == "/" and (skipped := _skip_comment(class_body, index)) != index:
            index = skipped
            continue

        if character == "{":
            depth += 1
        elif character == "}":
            depth -= 1

        at_member_start = character in "\n;}"
        index += 1

    return signatures
