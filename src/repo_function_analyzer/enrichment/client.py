from logging import Logger

from fastmcp.utilities.logging import get_logger

from repo_function_analyzer.enrichment.models import EnrichmentResult
from repo_function_analyzer.models.repository.tree import get_file_extension
from repo_function_analyzer.sampling.extract import object_in_text_instructions, parse_json_object
from repo_function_analyzer.sampling.generators import TextGenerator
from repo_function_analyzer.sampling.prompts import SystemPromptBuilder, UserPromptBuilder, estimate_tokens

MAX_SOURCE_CHARACTERS = 12000

CODE_FENCE_LANGUAGE: dict[str, str] = {"ts": "typescript", "tsx": "tsx", "js": "javascript", "jsx": "jsx"}

SYSTEM_PROMPT: str = SystemPromptBuilder().render_text()

TASK = """
Explain the code above. Describe its purpose and behaviour, each of its parameters, what it returns, any security
considerations, how it behaves asynchronously and how it handles errors. List the modules it imports or relies on,
the functions it calls and which of those calls go to imported modules or external services.
"""


def build_enrichment_prompt(source_slice: str, name: str, file_path: str) -> str:
    if len(source_slice) > MAX_SOURCE_CHARACTERS:
        source_slice = source_slice[:MAX_SOURCE_CHARACTERS] + "\n// ... truncated"

    language: str = CODE_FENCE_LANGUAGE.get(get_file_extension(file_path) or "", "javascript")

    return (
        UserPromptBuilder()
        .add_yaml_section(title="Context", obj={"name": name, "file": file_path})
        .add_code_section(title="Code", code=source_slice, language=language)
        .add_text_section(title="Task", text=TASK)
        .add_text_section(title="Response Schema", text=object_in_text_instructions(EnrichmentResult))
        .render_text()
    )


class EnrichmentClient:
    """Asks a text generator to explain a construct and reconciles whatever comes back into an `EnrichmentResult`.

    `enrich` never raises: a failed call or an unusable response produces a degraded result instead.
    """

    text_generator: TextGenerator
    logger: Logger

    def __init__(self, text_generator: TextGenerator, logger: Logger | None = None):
        self.text_generator = text_generator
        self.logger = logger or get_logger(__name__)

    async def enrich(self, source_slice: str, name: str, file_path: str) -> EnrichmentResult:
        prompt: str = build_enrichment_prompt(source_slice=source_slice, name=name, file_path=file_path)

        self.logger.debug(f"Requesting enrichment of {name} in {file_path} with a prompt of {estimate_tokens(prompt)} tokens.")

        try:
            response: str = await self.text_generator.generate(prompt=prompt, system_prompt=SYSTEM_PROMPT)
        except Exception as e:  # noqa: BLE001
            self.logger.warning(f"Enrichment of {name} in {file_path} failed: {e}")
            return EnrichmentResult.degraded(reason=f"the text generation request failed ({e})")

        self.logger.debug(f"Received enrichment of {name} in {file_path}: {estimate_tokens(response)} tokens.")

        return self.reconcile(response, name=name, file_path=file_path)

    def reconcile(self, response: str, name: str, file_path: str) -> EnrichmentResult:
        data, failure = parse_json_object(response)

        if failure is not None:
            self.logger.warning(f"Degraded enrichment for {name} in {file_path}: {failure}")
            return EnrichmentResult.degraded(reason=failure)

        result: EnrichmentResult = EnrichmentResult.reconcile(data)

        if result.is_degraded:
            self.logger.warning(f"Degraded enrichment for {name} in {file_path}: {result.degraded_reason}")

        return result
