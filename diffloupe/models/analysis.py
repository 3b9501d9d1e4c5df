"""Analysis result models

These are the structured shapes the analyzer is asked to produce. They double
as runtime validators: every analyzer response is checked against one of these
models before the rest of the pipeline touches it.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

ChangeScope = Literal["feature", "bugfix", "refactor", "config", "docs", "test", "mixed"]
RiskSeverity = Literal["low", "medium", "high", "critical"]
Confidence = Literal["high", "medium", "low"]
AlignmentLevel = Literal["aligned", "partial", "misaligned"]

SEVERITY_ORDER: dict[str, int] = {"critical": 0, "high": 1, "medium": 2, "low": 3}


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire and snake_case in Python"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DerivedIntent(CamelModel):
    """What the analyzer believes the change is trying to accomplish"""

    summary: str  # WHAT, 1-2 sentences
    purpose: str  # WHY
    scope: ChangeScope
    affected_areas: list[str]
    suggested_review_order: list[str] | None = None


class Risk(CamelModel):
    """A single concrete risk, grounded in evidence from the diff"""

    severity: RiskSeverity
    category: str
    description: str
    evidence: str
    file: str | None = None
    mitigation: str | None = None


class RiskAssessment(CamelModel):
    overall_risk: RiskSeverity
    summary: str
    risks: list[Risk]
    confidence: Confidence


class IntentAlignment(CamelModel):
    """Comparison of stated intent against derived intent"""

    alignment: AlignmentLevel
    confidence: Confidence
    summary: str
    matches: list[str]
    mismatches: list[str]
    missing: list[str]  # stated but not implemented
    unstated: list[str]  # implemented but not mentioned


def dedupe_risks(risks: list[Risk]) -> list[Risk]:
    """Drop risks sharing a category and description prefix, keeping the first"""
    seen: set[tuple[str, str]] = set()
    unique: list[Risk] = []
    for risk in risks:
        key = (risk.category, risk.description[:50])
        if key in seen:
            continue
        seen.add(key)
        unique.append(risk)
    return unique


def sort_risks_by_severity(risks: list[Risk]) -> list[Risk]:
    """Stable sort, critical first"""
    return sorted(risks, key=lambda r: SEVERITY_ORDER[r.severity])
