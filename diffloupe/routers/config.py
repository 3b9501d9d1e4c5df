"""Configuration API endpoints"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from diffloupe.services.config_manager import ConfigManager
from diffloupe.services.llm_service import LLMService

logger = logging.getLogger(__name__)

router = APIRouter()

PROVIDERS = ("anthropic", "openai", "gemini", "vllm")


class ConfigUpdateRequest(BaseModel):
    """Request to update configuration"""

    provider: str | None = None
    anthropic: dict | None = None
    openai: dict | None = None
    gemini: dict | None = None
    vllm: dict | None = None


class ConfigResponse(BaseModel):
    """Configuration response"""

    provider: str
    anthropic: dict
    openai: dict
    gemini: dict
    vllm: dict


class ValidateResponse(BaseModel):
    """Validation response"""

    valid: bool
    message: str
    provider: str


def mask_key(key: str) -> str:
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


@router.get("", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """Get current configuration, API keys masked"""
    config = ConfigManager.get_instance().get_config()

    sections = {}
    for provider in PROVIDERS:
        section = dict(config.get(provider, {}))
        section["apiKey"] = mask_key(section.get("apiKey", ""))
        sections[provider] = section

    return ConfigResponse(provider=config.get("provider", "anthropic"), **sections)


@router.put("")
async def update_config(request: ConfigUpdateRequest) -> dict[str, Any]:
    """Update configuration"""
    config_manager = ConfigManager.get_instance()
    current_config = config_manager.get_config()

    # Update only provided fields
    if request.provider:
        current_config["provider"] = request.provider
    for provider in PROVIDERS:
        update = getattr(request, provider)
        if update:
            current_config[provider] = {**current_config.get(provider, {}), **update}

    config_manager.save_config(current_config)

    return {"status": "success", "message": "Configuration updated"}


@router.post("/validate", response_model=ValidateResponse)
async def validate_config() -> ValidateResponse:
    """Validate current configuration by testing LLM connection"""
    config = ConfigManager.get_instance().get_config()
    provider = config.get("provider", "anthropic")

    try:
        response = await LLMService(config).generate_response("Say 'OK' if you can hear me.", max_tokens=16)
    except Exception as e:
        logger.warning("Config validation against %s failed: %s", provider, e)
        return ValidateResponse(valid=False, message=f"Connection failed: {e}", provider=provider)

    if response:
        return ValidateResponse(valid=True, message=f"Successfully connected to {provider}", provider=provider)
    return ValidateResponse(valid=False, message="Received empty response from LLM", provider=provider)
