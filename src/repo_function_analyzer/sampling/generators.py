"""Text-generation collaborators: submit a prompt, receive raw text."""

from typing import TYPE_CHECKING, Protocol, override

from fastmcp.server.dependencies import get_context
from google.genai import Client as GoogleGenaiClient
from google.genai.types import GenerateContentConfig, GenerateContentResponse, ThinkingConfig
from mcp.types import ContentBlock, TextContent
from openai import AsyncOpenAI

if TYPE_CHECKING:
    from fastmcp.server import Context
    from openai.types.chat import ChatCompletion

DEFAULT_MAX_TOKENS = 2000


class TextGenerator(Protocol):
    async def generate(self, prompt: str, system_prompt: str | None = None) -> str: ...


class GoogleGenaiTextGenerator(TextGenerator):
    def __init__(self, model: str, client: GoogleGenaiClient | None = None, max_tokens: int = DEFAULT_MAX_TOKENS):
        self.client: GoogleGenaiClient = client or GoogleGenaiClient()
        self.model: str = model
        self.max_tokens: int = max_tokens

    @override
    async def generate(self, prompt: str, system_prompt: str | None = None) -> str:
        response: GenerateContentResponse = await self.client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=0.0,
                max_output_tokens=self.max_tokens,
                thinking_config=ThinkingConfig(thinking_budget=200),
            ),
        )

        if not (text := response.text):
            finish_reason = response.candidates[0].finish_reason if response.candidates else None
            msg = f"No content in response from completion: {finish_reason}"
            raise ValueError(msg)

        return text


class OpenAITextGenerator(TextGenerator):
    def __init__(self, model: str, client: AsyncOpenAI | None = None, max_tokens: int = DEFAULT_MAX_TOKENS):
        self.client: AsyncOpenAI = client or AsyncOpenAI()
        self.model: str = model
        self.max_tokens: int = max_tokens

    @override
    async def generate(self, prompt: str, system_prompt: str | None = None) -> str:
        messages: list[dict[str, str]] = []

        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})

        messages.append({"role": "user", "content": prompt})

        response: ChatCompletion = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,  # pyright: ignore[reportArgumentType]
            temperature=0.0,
            max_tokens=self.max_tokens,
        )

        if not response.choices or not (text := response.choices[0].message.content):
            msg = "No content in response from completion."
            raise ValueError(msg)

        return text


class SamplingTextGenerator(TextGenerator):
    """Delegates generation to the connected MCP client. Only usable while handling an MCP request."""

    def __init__(self, max_tokens: int = DEFAULT_MAX_TOKENS):
        self.max_tokens: int = max_tokens

    @override
    async def generate(self, prompt: str, system_prompt: str | None = None) -> str:
        context: Context = get_context()

        response: ContentBlock = await context.sample(
            messages=prompt,
            system_prompt=system_prompt,
            temperature=0.0,
            max_tokens=self.max_tokens,
        )

        if not isinstance(response, TextContent):
            msg = "The sampling call did not return text."
            raise TypeError(msg)

        return response.text
