"""Tests for prompt construction and response payload parsing."""

import json

import pytest

from sectionforge.models import SectionDefinition
from sectionforge.service import ResponseParseError, build_section_prompt, parse_section_payload


@pytest.fixture
def section():
    return SectionDefinition(
        id="roi-analysis",
        title="ROI & Cost Analysis",
        description="Financial projections and cost-benefit analysis",
    )


class TestBuildSectionPrompt:
    """Tests for build_section_prompt."""

    def test_includes_section_and_document(self, section):
        prompt = build_section_prompt(section, {"document_name": "Healthcare & Medical"})

        assert "SECTION: ROI & Cost Analysis" in prompt
        assert "DOCUMENT: Healthcare & Medical" in prompt
        assert "DESCRIPTION: Financial projections and cost-benefit analysis" in prompt
        assert '"htmlContent"' in prompt
        assert '"pdfData"' in prompt

    def test_requester_block(self, section):
        prompt = build_section_prompt(
            section,
            {"document_name": "Finance", "requester": {"company": "Acme", "contact": None}},
        )
        assert "PREPARED FOR:" in prompt
        assert "- company: Acme" in prompt
        assert "contact" not in prompt

    def test_no_requester_block_by_default(self, section):
        assert "PREPARED FOR:" not in build_section_prompt(section, {})

    def test_description_falls_back_to_title(self):
        section = SectionDefinition(id="x", title="Only Title")
        assert "DESCRIPTION: Only Title" in build_section_prompt(section, {})


class TestParseSectionPayload:
    """Tests for parse_section_payload."""

    def test_structured_payload(self, section_payload):
        result = parse_section_payload(json.dumps(section_payload))

        assert result.display_payload == section_payload["htmlContent"]
        assert result.structured_data == section_payload["pdfData"]
        assert not result.is_display_only

    def test_markdown_fences_stripped(self, section_payload):
        text = f"```json\n{json.dumps(section_payload)}\n```"
        result = parse_section_payload(text)
        assert result.structured_data["title"] == "Executive Summary"

    def test_surrounding_prose_ignored(self, section_payload):
        text = f"Here is the section:\n{json.dumps(section_payload)}\nHope this helps."
        assert parse_section_payload(text).structured_data is not None

    def test_invalid_json_is_display_only(self):
        result = parse_section_payload("<h2>Summary</h2><p>Plain HTML answer</p>")

        assert result.is_display_only
        assert result.display_payload == "<h2>Summary</h2><p>Plain HTML answer</p>"

    def test_missing_pdf_data_is_display_only(self):
        text = json.dumps({"htmlContent": "<p>x</p>"})
        result = parse_section_payload(text)

        assert result.is_display_only
        assert result.display_payload == text

    def test_non_string_html_is_display_only(self):
        assert parse_section_payload(json.dumps({"htmlContent": 3, "pdfData": {}})).is_display_only

    @pytest.mark.parametrize("text", ["", "   \n"])
    def test_blank_response(self, text):
        with pytest.raises(ResponseParseError):
            parse_section_payload(text)
