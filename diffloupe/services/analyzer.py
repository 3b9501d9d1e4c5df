"""
Analyzer boundary - structured-output requests to the external model

Every executor talks to the model through `request_structured`, which treats
the declared schema as a runtime contract: the raw reply is validated with
pydantic and comes back as a tagged `StructuredResult` instead of being
trusted as-is.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from diffloupe.models.llm import AnalyzerRequest, StructuredResult
from diffloupe.services.llm_service import LLMService

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class Analyzer(Protocol):
    """Anything that can answer a structured request with a JSON object"""

    async def complete(self, request: AnalyzerRequest) -> dict[str, Any]: ...


async def request_structured(
    analyzer: Analyzer,
    system_prompt: str,
    user_prompt: str,
    schema: type[SchemaT],
    temperature: float = 0.3,
    max_tokens: int = 4096,
) -> StructuredResult[SchemaT]:
    """
    Send one request and validate the reply against `schema`.

    Transport errors propagate. A reply that does not match the schema is
    returned as a result carrying `error`; callers decide whether to raise
    (usually via `unwrap()`).
    """
    request = AnalyzerRequest(
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        schema_name=schema.__name__,
        json_schema=schema.model_json_schema(by_alias=True),
        temperature=temperature,
        max_tokens=max_tokens,
    )
    raw = await analyzer.complete(request)

    result_type = StructuredResult[schema]
    try:
        data = schema.model_validate(raw)
    except ValidationError as e:
        logger.warning("Analyzer reply failed %s validation: %d error(s)", schema.__name__, e.error_count())
        return result_type(schema_name=schema.__name__, error=str(e), raw=raw)
    return result_type(schema_name=schema.__name__, data=data, raw=raw)


class LLMAnalyzer:
    """Analyzer backed by one of the configured LLM providers"""

    def __init__(self, service: LLMService):
        self.service = service

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "LLMAnalyzer":
        return cls(LLMService(config))

    async def complete(self, request: AnalyzerRequest) -> dict[str, Any]:
        logger.info(
            "Requesting %s from %s (temperature=%s, max_tokens=%d, prompt=%d chars)",
            request.schema_name,
            self.service.provider,
            request.temperature,
            request.max_tokens,
            len(request.user_prompt),
        )
        return await self.service.generate_json(
            request.user_prompt,
            system_prompt=request.system_prompt,
            json_schema=request.json_schema,
            temperature=request.temperature,
            max_tokens=request.max_tokens,
        )
