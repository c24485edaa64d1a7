from textwrap import dedent
from typing import Any, Self

import yaml
from pydantic import BaseModel, Field


class PromptSection(BaseModel):
    title: str = Field(description="The title of the section.")
    level: int = Field(default=1, description="The level of the section.")
    section: str = Field(description="The section of the prompt.")

    def render_text(self) -> str:
        return f"{'#' * self.level} {self.title}\n{self.section}"


WHO_YOU_ARE = PromptSection(
    title="Who you are",
    level=1,
    section="""
You are an experienced JavaScript and TypeScript engineer who explains code to other developers. You read a single
function, method or class taken from a repository and describe what it does, how it is called and what it depends on.
""",
)

DEEPLY_ROOTED = PromptSection(
    title="Deeply Rooted",
    level=1,
    section="""
Your explanation must be rooted entirely in the code you are given. Do not guess at behaviour that is not visible in
the code. When something cannot be determined from the code, say so briefly rather than inventing it.
""",
)

RESPONSE_FORMAT = PromptSection(
    title="Response Format",
    level=1,
    section="""
Your entire response will be parsed by a program. Respond with the JSON object only, without acknowledging the task
and without any text before or after it.
""",
)

SYSTEM_PROMPT_SECTIONS = [WHO_YOU_ARE, DEEPLY_ROOTED, RESPONSE_FORMAT]


class PromptBuilder(BaseModel):
    """Assembles a prompt from titled markdown sections, in the order they are added."""

    sections: list[PromptSection] = Field(default_factory=list, description="The sections of the prompt.")

    def _add(self, title: str, body: str, level: int) -> Self:
        self.sections.append(PromptSection(title=title, level=level, section=body))
        return self

    def add_text_section(self, title: str, text: str | list[str], level: int = 1) -> Self:
        paragraphs: list[str] = text if isinstance(text, list) else [text]

        return self._add(title=title, body="\n".join(dedent(paragraph) for paragraph in paragraphs), level=level)

    def add_code_section(self, title: str, code: str, language: str, level: int = 1) -> Self:
        return self._add(title=title, body=f"\n```{language}\n{code}\n```\n", level=level)

    def add_yaml_section(self, title: str, obj: dict[str, Any], level: int = 1) -> Self:
        # Keys keep insertion order.
        return self._add(title=title, body=f"\n```yaml\n{yaml.safe_dump(obj, sort_keys=False)}```", level=level)

    def render_text(self) -> str:
        return "\n\n".join(section.render_text() for section in self.sections)


class SystemPromptBuilder(PromptBuilder):
    sections: list[PromptSection] = Field(default_factory=lambda: list(SYSTEM_PROMPT_SECTIONS))


class UserPromptBuilder(PromptBuilder):
    pass


def estimate_tokens(text: str) -> int:
    """A rough token count, about four characters per token."""

    return len(text) // 4
