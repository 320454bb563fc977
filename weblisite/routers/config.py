"""Configuration API endpoints"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from weblisite.services.config_manager import ConfigManager, GenerationSettings
from weblisite.services.llm_service import LLMService, LLMServiceError

router = APIRouter()

PROVIDERS = ("anthropic", "openai", "gemini", "vllm")


class ConfigUpdateRequest(BaseModel):
    """Request to update configuration"""

    provider: str | None = None
    anthropic: dict | None = None
    openai: dict | None = None
    gemini: dict | None = None
    vllm: dict | None = None
    generation: dict | None = None


class ConfigResponse(BaseModel):
    """Configuration response"""

    provider: str
    anthropic: dict
    openai: dict
    gemini: dict
    vllm: dict
    generation: dict


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
    """Get current configuration"""
    config = ConfigManager.get_instance().get_config()

    sections = {}
    for provider in PROVIDERS:
        section = dict(config.get(provider, {}))
        section["apiKey"] = mask_key(section.get("apiKey", ""))
        sections[provider] = section

    return ConfigResponse(
        provider=config.get("provider", "anthropic"),
        generation=config.get("generation", {}),
        **sections,
    )


@router.put("")
async def update_config(body: ConfigUpdateRequest, request: Request) -> dict[str, Any]:
    """Update configuration"""
    if body.provider and body.provider not in PROVIDERS:
        raise HTTPException(status_code=400, detail=f"Unsupported provider: {body.provider}")

    update = body.model_dump(exclude_none=True)
    if "generation" in update:
        try:
            GenerationSettings.from_config({"generation": update["generation"]})
        except (TypeError, ValueError) as e:
            raise HTTPException(status_code=400, detail=f"Invalid generation settings: {e}")

    ConfigManager.get_instance().save_config(update)
    request.app.state.runtime.refresh_settings()

    return {"status": "success", "message": "Configuration updated"}


@router.post("/validate", response_model=ValidateResponse)
async def validate_config() -> ValidateResponse:
    """Validate current configuration by testing LLM connection"""
    config = ConfigManager.get_instance().get_config()
    provider = config.get("provider", "anthropic")

    try:
        response = await LLMService(config).generate_response("Say 'OK' if you can hear me.")
    except (LLMServiceError, ValueError) as e:
        return ValidateResponse(valid=False, message=f"Connection failed: {e}", provider=provider)

    if response:
        return ValidateResponse(valid=True, message=f"Successfully connected to {provider}", provider=provider)
    return ValidateResponse(valid=False, message="Received empty response from LLM", provider=provider)
