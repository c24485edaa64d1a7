import os

from fastmcp.utilities.logging import get_logger

from repo_function_analyzer.sampling.generators import (
    GoogleGenaiTextGenerator,
    OpenAITextGenerator,
    SamplingTextGenerator,
    TextGenerator,
)

logger = get_logger(__name__)


def get_text_generator() -> TextGenerator:
    if os.getenv("GOOGLE_API_KEY"):
        return GoogleGenaiTextGenerator(model=os.getenv("GOOGLE_MODEL") or "gemini-2.5-flash")

    if os.getenv("OPENAI_API_KEY"):
        return OpenAITextGenerator(model=os.getenv("OPENAI_MODEL") or "gpt-4o")

    logger.warning(
        msg=(
            "No text generator configured, enrichment will be requested from the connected MCP client through sampling "
            "and will be degraded outside of an MCP request. Set OPENAI_API_KEY or GOOGLE_API_KEY to use a text generator."
        )
    )

    return SamplingTextGenerator()
