"""Prompts module - Analyzer prompt builders and derivation calls"""

from .intent import build_intent_prompt, derive_intent
from .risks import assess_risks, build_risk_prompt
from .alignment import align_intent, build_alignment_prompt

__all__ = [
    "build_intent_prompt",
    "derive_intent",
    "assess_risks",
    "build_risk_prompt",
    "align_intent",
    "build_alignment_prompt",
]
