"""LLM boundary models and errors"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)


class LLMAPIKeyError(ValueError):
    """Raised when the configured provider has no API key"""

    def __init__(self, provider: str, env_var: str | None = None):
        hint = f" Set it in the config or via the {env_var} environment variable." if env_var else ""
        super().__init__(f"{provider} API key not configured.{hint}")
        self.provider = provider


class LLMGenerationError(RuntimeError):
    """Raised when the provider call itself fails"""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status  # HTTP status, None for network/timeout failures


class LLMJSONParseError(ValueError):
    """Raised when the provider reply cannot be parsed as a JSON object"""

    def __init__(self, message: str, raw_text: str):
        super().__init__(message)
        self.raw_text = raw_text


class AnalyzerValidationError(ValueError):
    """Raised when an analyzer response does not match its declared schema"""

    def __init__(self, schema_name: str, detail: str):
        super().__init__(f"Validation failed for {schema_name}: {detail}")
        self.schema_name = schema_name
        self.detail = detail


class AnalyzerRequest(BaseModel):
    """One structured-output request sent to the external analyzer"""

    system_prompt: str
    user_prompt: str
    schema_name: str
    json_schema: dict[str, Any]
    temperature: float = 0.3
    max_tokens: int = 4096


class StructuredResult(BaseModel, Generic[ModelT]):
    """Tagged analyzer outcome: validated data or a validation error, never both"""

    schema_name: str
    data: ModelT | None = None
    error: str | None = None
    raw: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None

    def unwrap(self) -> ModelT:
        """Return the validated data or raise AnalyzerValidationError"""
        if not self.ok:
            raise AnalyzerValidationError(self.schema_name, self.error or "empty response")
        return self.data
