"""Turning generated text into structured objects.

Generated responses are untrusted and often not quite JSON: they come wrapped in prose and markdown fences, use
single quotes, leave keys unquoted, write `True`, `NaN` or `undefined`, and leave trailing commas behind. The
functions here repair that text as far as they can and never raise.
"""

import json
import re
from textwrap import dedent
from typing import Any

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, TypeAdapter
from pydantic_core import from_json

logger = get_logger(__name__)

ALLOWED_TYPES = BaseModel | list[BaseModel]

CONTROL_CHARACTERS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
MARKDOWN_MARKERS = re.compile(r"\*\*|`")
BARE_WORD = re.compile(r"[A-Za-z_$][\w$]*")

LITERALS: dict[str, str] = {
    "true": "true",
    "false": "false",
    "null": "null",
    "none": "null",
    "nan": "null",
    "undefined": "null",
    "infinity": "null",
}

SIMPLE_ESCAPES: dict[str, str] = {
    '"': '"',
    "'": "'",
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}

HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

VALUE_DELIMITERS = ",}]\n"


def object_in_text_instructions[T: ALLOWED_TYPES](object_type: type[T]) -> str:
    """Return instructions for answering with a single JSON object of the given type."""

    type_adapter: TypeAdapter[T] = TypeAdapter[T](object_type)
    json_schema: dict[str, Any] = type_adapter.json_schema(by_alias=True)

    return dedent(
        f"""
The only valid response to this request is a single JSON object of type {object_type.__name__}.

The schema for the object is:
```json
{json.dumps(obj=json_schema, indent=1)}
```

Place the JSON between ``` tags. Use double quotes for every key and string, close every object, array and string,
and do not leave trailing commas. Do not add commentary before or after the JSON block.
"""
    ).strip()


def slice_outermost_object(text: str) -> str | None:
    """The text from the first `{` to the last `}`, or None when there is no such span."""

    start: int = text.find("{")
    end: int = text.rfind("}")

    if start < 0 or end <= start:
        return None

    return text[start : end + 1]


def _read_string(text: str, index: int) -> tuple[str, int]:
    """Decode the string literal opening at `index` and return it with the index just past its closing quote.

    Either quote style is accepted. Unknown escapes are kept as written, raw line breaks are kept as part of the
    value and an unterminated string runs to the end of the text.
    """

    quote: str = text[index]
    index += 1
    characters: list[str] = []

    while index < len(text):
        character = text[index]

        if character == quote:
            return "".join(characters), index + 1

        if character != "\\":
            characters.append(character)
            index += 1
            continue

        escaped: str = text[index + 1] if index + 1 < len(text) else ""

        if escaped in SIMPLE_ESCAPES:
            characters.append(SIMPLE_ESCAPES[escaped])
            index += 2
        elif escaped == "u" and len(hex_digits := text[index + 2 : index + 6]) == 4 and set(hex_digits) <= HEX_DIGITS:
            characters.append(chr(int(hex_digits, 16)))
            index += 6
        elif escaped == "\n":
            index += 2
        else:
            characters.append("\\")
            index += 1

    return "".join(characters), index


def _skip_whitespace(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index


def _read_bare_value(text: str, index: int) -> tuple[str, int]:
    """An unquoted value runs until the next delimiter on the same line."""

    end = index
    while end < len(text) and text[end] not in VALUE_DELIMITERS:
        end += 1
    return text[index:end].strip(), end


def normalize_json_text(text: str) -> str:
    """Rewrite JavaScript-ish object text as JSON.

    Strings are re-encoded with double quotes, unquoted keys and bare-word values are quoted, literal spellings
    are normalised, and commas directly before a closing bracket are dropped.
    """

    output: list[str] = []
    index = 0

    while index < len(text):
        character = text[index]

        if character in "\"'":
            value, index = _read_string(text, index)
            output.append(json.dumps(value))
            continue

        if character == ",":
            following: int = _skip_whitespace(text, index + 1)
            if following >= len(text) or text[following] in "}]":
                index += 1
                continue
            output.append(character)
            index += 1
            continue

        # Exponents and other word characters inside a number are not words.
        continues_token: bool = index > 0 and (text[index - 1].isalnum() or text[index - 1] in "._$")

        if not continues_token and (bare_word := BARE_WORD.match(text, index)):
            word: str = bare_word.group(0)
            following = _skip_whitespace(text, bare_word.end())

            if following < len(text) and text[following] == ":":
                output.append(json.dumps(word))
                index = bare_word.end()
            elif (literal := LITERALS.get(word.lower())) is not None and (
                following >= len(text) or text[following] in VALUE_DELIMITERS
            ):
                output.append(literal)
                index = bare_word.end()
            else:
                value, index = _read_bare_value(text, index)
                output.append(json.dumps(value))
            continue

        output.append(character)
        index += 1

    return "".join(output)


def sanitize_json_text(text: str) -> str | None:
    """Repair generated text into JSON object text, or None when the text holds no object at all."""

    if (object_text := slice_outermost_object(text)) is None:
        return None

    object_text = CONTROL_CHARACTERS.sub("", object_text)
    object_text = MARKDOWN_MARKERS.sub("", object_text)

    return normalize_json_text(object_text)


def parse_json_object(text: str) -> tuple[Any, str | None]:  # pyright: ignore[reportAny]
    """Parse generated text into a JSON value.

    Returns the value and None, or None and the reason the text could not be parsed. Truncated responses are
    completed as far as possible rather than rejected.
    """

    if (json_text := sanitize_json_text(text)) is None:
        return None, "the response did not contain a JSON object"

    try:
        return from_json(json_text), None
    except ValueError as e:
        logger.debug(f"Strict parse of repaired response failed, trying a partial parse: {e}")

    try:
        return from_json(json_text, allow_partial=True), None
    except ValueError as e:
        return None, f"the response could not be parsed as JSON ({e})"
