"""Tests for the intent, risk and alignment prompts."""

import asyncio

import pytest

from diffloupe.models.analysis import DerivedIntent
from diffloupe.models.llm import AnalyzerValidationError
from diffloupe.prompts.alignment import align_intent, build_alignment_prompt
from diffloupe.prompts.intent import build_intent_prompt, derive_intent
from diffloupe.prompts.risks import assess_risks, build_risk_prompt
from diffloupe.services.diff_loader import classify_diff
from diffloupe.services.diff_parser import parse_diff

from conftest import alignment_reply, file_diff, intent_reply, join_diff, risk_reply


@pytest.fixture
def parsed(simple_diff):
    diff = parse_diff(simple_diff)
    return diff, classify_diff(diff)


def test_intent_prompt_sections(parsed):
    """Tier 3 files are counted but not shown."""
    diff, classified = parsed
    prompt = build_intent_prompt(diff, classified, stated_intent="Add login", repository_context="Django app")

    assert "Total files changed: 3" in prompt
    assert "Files included for analysis: 2" in prompt
    assert "(1 files excluded: lock files, generated code, binaries)" in prompt
    assert "Django app" in prompt
    assert "- src/auth.py (modified)" in prompt
    assert "=== src/auth.py (MODIFIED) ===" in prompt
    assert "package-lock.json" not in prompt
    assert "## Author's Stated Intent" in prompt


def test_risk_prompt_notes_excluded_tests():
    diff = parse_diff(
        join_diff(
            file_diff("src/app.py", added=["x = 1"]),
            file_diff("dist/app.test.js", added=["it()"]),
        )
    )
    prompt = build_risk_prompt(diff, classify_diff(diff))
    assert "Note: 1 test file(s) were in excluded category" in prompt


def test_derive_intent_request(parsed, analyzer_factory):
    diff, classified = parsed
    analyzer = analyzer_factory({"DerivedIntent": intent_reply()})
    intent = asyncio.run(derive_intent(diff, classified, analyzer))

    assert intent.scope == "feature"
    assert intent.affected_areas == ["auth"]
    request = analyzer.requests[0]
    assert request.schema_name == "DerivedIntent"
    assert request.temperature == 0.3
    assert "affectedAreas" in request.json_schema["properties"]


def test_derive_intent_validation_error_mentions_diff_size(parsed, analyzer_factory):
    diff, classified = parsed
    analyzer = analyzer_factory({"DerivedIntent": {"summary": "only this"}})

    with pytest.raises(AnalyzerValidationError) as excinfo:
        asyncio.run(derive_intent(diff, classified, analyzer))
    assert "(3 files, 2 analyzed)" in str(excinfo.value)


def test_assess_risks_request(parsed, analyzer_factory):
    diff, classified = parsed
    analyzer = analyzer_factory({"RiskAssessment": risk_reply()})
    assessment = asyncio.run(assess_risks(diff, classified, analyzer))

    assert assessment.overall_risk == "medium"
    assert assessment.risks[0].file == "src/auth.py"
    assert analyzer.requests[0].temperature == 0.4


def test_invalid_severity_is_rejected(parsed, analyzer_factory):
    diff, classified = parsed
    reply = risk_reply()
    reply["overallRisk"] = "catastrophic"
    analyzer = analyzer_factory({"RiskAssessment": reply})

    with pytest.raises(AnalyzerValidationError, match="RiskAssessment"):
        asyncio.run(assess_risks(diff, classified, analyzer))


def test_alignment(parsed, analyzer_factory):
    diff, classified = parsed
    derived = DerivedIntent.model_validate(intent_reply())
    prompt = build_alignment_prompt("Add login", derived, diff, classified)

    assert prompt.startswith("## Author's Stated Intent\n\nAdd login")
    assert "**Summary:** Adds a login endpoint" in prompt
    assert "**Affected Areas:** auth" in prompt

    analyzer = analyzer_factory({"IntentAlignment": alignment_reply("partial")})
    alignment = asyncio.run(align_intent("Add login", derived, diff, classified, analyzer))
    assert alignment.alignment == "partial"
    assert alignment.matches == ["login endpoint"]
