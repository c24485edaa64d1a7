from inline_snapshot import snapshot

from repo_function_analyzer.enrichment.client import EnrichmentClient, build_enrichment_prompt
from tests.conftest import FakeTextGenerator

SOURCE = "export const formatDate = (date) => dayjs(date).format('YYYY-MM-DD');"


class FailingTextGenerator:
    async def generate(self, prompt: str, system_prompt: str | None = None) -> str:
        msg = "quota exceeded"
        raise RuntimeError(msg)


def test_build_enrichment_prompt():
    prompt = build_enrichment_prompt(source_slice=SOURCE, name="formatDate", file_path="src/utils/date.ts")

    assert prompt.startswith("# Context\n")
    assert "name: formatDate\nfile: src/utils/date.ts\n" in prompt
    assert f"# Code\n\n```typescript\n{SOURCE}\n```" in prompt
    assert "# Task" in prompt
    assert "single JSON object of type EnrichmentResult" in prompt
    assert '"parameterDescriptions"' in prompt
    assert "degraded" not in prompt


def test_build_enrichment_prompt_truncates_long_sources():
    prompt = build_enrichment_prompt(source_slice="x" * 20000, name="big", file_path="big.js")

    assert "x" * 12000 + "\n// ... truncated" in prompt
    assert "x" * 12001 not in prompt


class TestEnrich:
    async def test_sanitizes_response(self):
        text_generator = FakeTextGenerator(
            response="Here is the analysis:\n```json\n{description: 'Formats a date.', type: 'Utility Function', returnDescription: \"The date as text\",}\n```"
        )
        client = EnrichmentClient(text_generator=text_generator)

        result = await client.enrich(source_slice=SOURCE, name="formatDate", file_path="src/utils/date.ts")

        assert result.description == "Formats a date."
        assert result.type == "Utility Function"
        assert result.return_description == "The date as text"
        assert not result.is_degraded
        assert len(text_generator.prompts) == 1

    async def test_prose_response_is_degraded(self):
        client = EnrichmentClient(text_generator=FakeTextGenerator(response="This function formats a date."))

        result = await client.enrich(source_slice=SOURCE, name="formatDate", file_path="src/utils/date.ts")

        assert result.is_degraded
        assert result.model_dump(by_alias=True, exclude_none=True) == snapshot(
            {
                "description": "Analysis failed: the response did not contain a JSON object",
                "type": "Unknown",
                "parameterDescriptions": [],
                "returnDescription": "Analysis failed",
                "dependencies": {"imports": [], "internalCalls": [], "externalCalls": []},
            }
        )

    async def test_generator_failure_is_degraded(self):
        client = EnrichmentClient(text_generator=FailingTextGenerator())

        result = await client.enrich(source_slice=SOURCE, name="formatDate", file_path="src/utils/date.ts")

        assert result.is_degraded
        assert result.description == "Analysis failed: the text generation request failed (quota exceeded)"
        assert result.type == "Unknown"
