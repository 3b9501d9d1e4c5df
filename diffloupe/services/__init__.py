"""Services module - Business logic layer"""

from .llm_service import LLMService, extract_json
from .config_manager import ConfigManager
from .analyzer import Analyzer, LLMAnalyzer, request_structured

__all__ = [
    "LLMService",
    "extract_json",
    "ConfigManager",
    "Analyzer",
    "LLMAnalyzer",
    "request_structured",
]
