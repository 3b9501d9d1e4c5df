"""Pytest configuration and fixtures for DiffLoupe tests."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from diffloupe.models.llm import AnalyzerRequest
from diffloupe.services.config_manager import CONFIG_DIR_ENV, ConfigManager


class FakeAnalyzer:
    """Analyzer double that records requests and replies from a script.

    `responses` maps a schema name to either a dict (returned every time),
    a list of dicts (consumed in order) or a callable taking the request.
    """

    def __init__(self, responses: dict[str, Any] | None = None):
        self.responses = dict(responses or {})
        self.requests: list[AnalyzerRequest] = []

    async def complete(self, request: AnalyzerRequest) -> dict[str, Any]:
        self.requests.append(request)
        reply = self.responses[request.schema_name]
        if callable(reply):
            return reply(request)
        if isinstance(reply, list):
            return reply.pop(0)
        return reply

    def requests_for(self, schema_name: str) -> list[AnalyzerRequest]:
        return [r for r in self.requests if r.schema_name == schema_name]


def file_diff(
    path: str,
    added: list[str] | tuple[str, ...] = (),
    deleted: list[str] | tuple[str, ...] = (),
    status: str = "modified",
    old_path: str | None = None,
) -> str:
    """Render one file's section of a git diff"""
    source = old_path or path
    lines = [f"diff --git a/{source} b/{path}"]
    if status == "added":
        lines.append("new file mode 100644")
    elif status == "deleted":
        lines.append("deleted file mode 100644")
    elif status == "renamed":
        lines.extend(["similarity index 90%", f"rename from {source}", f"rename to {path}"])
    lines.append("index 1111111..2222222 100644")
    lines.append("--- /dev/null" if status == "added" else f"--- a/{source}")
    lines.append("+++ /dev/null" if status == "deleted" else f"+++ b/{path}")

    if added or deleted:
        old_start = 0 if not deleted else 1
        new_start = 0 if not added else 1
        lines.append(f"@@ -{old_start},{len(deleted)} +{new_start},{len(added)} @@")
        lines.extend(f"-{line}" for line in deleted)
        lines.extend(f"+{line}" for line in added)
    return "\n".join(lines)


def join_diff(*sections: str) -> str:
    return "\n".join(sections) + "\n"


def many_files_diff(count: int, lines_per_file: int = 25, width: int = 100, prefix: str = "src/mod") -> str:
    """A diff of `count` tier-1 files, each roughly 630 tokens with the defaults"""
    sections = []
    for i in range(count):
        added = [f"value_{i}_{n} = " + "x" * (width - 12) for n in range(lines_per_file)]
        sections.append(file_diff(f"{prefix}{i:03d}.py", added=added))
    return join_diff(*sections)


# ========== Canned analyzer replies ==========


def intent_reply(summary: str = "Adds a login endpoint", scope: str = "feature") -> dict[str, Any]:
    return {
        "summary": summary,
        "purpose": "Let users authenticate",
        "scope": scope,
        "affectedAreas": ["auth"],
    }


def risk(severity: str = "medium", category: str = "security", description: str = "Token is logged") -> dict[str, Any]:
    return {
        "severity": severity,
        "category": category,
        "description": description,
        "evidence": "logger.info(token)",
        "file": "src/auth.py",
    }


def risk_reply(risks: list[dict[str, Any]] | None = None, overall: str = "medium") -> dict[str, Any]:
    return {
        "overallRisk": overall,
        "summary": "One issue worth a look",
        "risks": risks if risks is not None else [risk()],
        "confidence": "high",
    }


def alignment_reply(alignment: str = "aligned") -> dict[str, Any]:
    return {
        "alignment": alignment,
        "confidence": "high",
        "summary": "The change does what it says",
        "matches": ["login endpoint"],
        "mismatches": [],
        "missing": [],
        "unstated": [],
    }


def synthesis_reply() -> dict[str, Any]:
    return {
        "summary": "Reworks the module layer",
        "purpose": "Consolidate shared code",
        "scope": "refactor",
        "affectedAreas": ["modules"],
        "overallRisk": "high",
        "riskSummary": "Several flows touch shared state",
        "crossFlowConcerns": ["Shared constants renamed across flows"],
        "confidence": "medium",
    }


@pytest.fixture
def analyzer_factory() -> Callable[..., FakeAnalyzer]:
    return FakeAnalyzer


@pytest.fixture
def simple_diff() -> str:
    """One source file, one doc file and a lock file"""
    return join_diff(
        file_diff("src/auth.py", added=["def login(user):", "    return token(user)"], deleted=["def login():"]),
        file_diff("README.md", added=["## Login"]),
        file_diff("package-lock.json", added=['  "lockfileVersion": 3']),
    )


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Point ConfigManager at a temporary directory for the duration of a test"""
    monkeypatch.setenv(CONFIG_DIR_ENV, str(tmp_path))
    ConfigManager.reset_instance()
    yield tmp_path
    ConfigManager.reset_instance()
