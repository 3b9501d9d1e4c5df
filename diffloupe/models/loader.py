"""Classification, budget and token estimate models"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

from .diff import DiffFile

FileTier = Literal[1, 2, 3]


class ClassifiedFile(BaseModel):
    """A diff file with its classification metadata"""

    model_config = ConfigDict(frozen=True)

    file: DiffFile
    tier: FileTier
    reason: str  # which classification rule matched
    estimated_tokens: int

    @property
    def path(self) -> str:
        return self.file.path


class LoadBudgetResult(BaseModel):
    """Result of budget-based file selection"""

    included: list[ClassifiedFile] = []
    excluded: list[ClassifiedFile] = []
    total_tokens: int = 0


class DeletedFileSummary(BaseModel):
    """Header and extracted signatures standing in for a large deleted file"""

    header_lines: list[str]
    signatures: list[str]
    total_lines: int


class FileTokenEstimate(BaseModel):
    """Token cost of one file, with and without deleted-file summarization"""

    original: int
    with_summarization: int
    summarized: bool


class FileTokenEntry(BaseModel):
    path: str
    estimate: FileTokenEstimate


class TokenTotals(BaseModel):
    original: int = 0
    with_summarization: int = 0
    savings: int = 0
    savings_percent: int = 0


class DiffTokenEstimate(BaseModel):
    """Per-file estimates plus aggregate totals for a whole diff"""

    files: list[FileTokenEntry] = []
    totals: TokenTotals = TokenTotals()
