"""
Configuration Manager - Handle backend settings persistence
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from weblisite.services.demuxer import ReconcilePolicy
from weblisite.services.syntax_repair import BASELINE_DEPENDENCIES, ReconstructionPolicy

logger = logging.getLogger(__name__)

API_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``override`` on ``base`` (new dict)"""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """Manage configuration persistence"""

    _instance = None
    _config_file = None

    def __init__(self):
        try:
            # 1. environment variable
            config_dir = os.environ.get("WEBLISITE_CONFIG_DIR")

            # 2. home directory ~/.weblisite
            if not config_dir:
                config_dir = os.path.expanduser("~/.weblisite")

            if config_dir:
                config_path = Path(config_dir)
                try:
                    config_path.mkdir(parents=True, exist_ok=True)
                    self._config_file = config_path / "config.json"
                except OSError as e:
                    logger.warning(f"[ConfigManager] Cannot write to {config_dir}: {e}")
                    self._config_file = None

            # 3. temp directory when the others are unusable
            if not self._config_file:
                tmp_dir = Path(tempfile.gettempdir()) / "weblisite"
                tmp_dir.mkdir(parents=True, exist_ok=True)
                self._config_file = tmp_dir / "config.json"
                logger.info(f"[ConfigManager] Using temporary config path: {self._config_file}")

        except OSError as e:
            logger.error(f"[ConfigManager] Critical error during init: {e}")
            self._config_file = Path(tempfile.gettempdir()) / "weblisite_config_fallback.json"

        self._config = self._load_config()

    @classmethod
    def get_instance(cls) -> "ConfigManager":
        """Get singleton instance"""
        if cls._instance is None:
            cls._instance = ConfigManager()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None

    @property
    def config_file(self) -> Path:
        return self._config_file

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file, layered over the defaults"""
        if not self._config_file.exists():
            return self._default_config()

        try:
            with open(self._config_file) as f:
                return _merge(self._default_config(), json.load(f))
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"[ConfigManager] Error loading config: {e}")
            return self._default_config()

    def _default_config(self) -> dict[str, Any]:
        """Get default configuration"""
        return {
            "provider": "anthropic",
            "anthropic": {
                "apiKey": "",
                "model": "claude-sonnet-4-20250514",
                "endpoint": "https://api.anthropic.com",
            },
            "openai": {"apiKey": "", "model": "gpt-4o"},
            "gemini": {"apiKey": "", "model": "gemini-2.5-flash"},
            "vllm": {
                "endpoint": "http://localhost:8000",
                "apiKey": "",
                "model": "meta-llama/Llama-2-7b-chat-hf",
            },
            "generation": {
                "timeoutMs": 180_000,
                "fixTimeoutMs": 120_000,
                "maxTokens": 32_000,
                "temperature": 0.7,
                "materializePartial": True,
                "reconstructionPolicy": ReconstructionPolicy.STRICT.value,
                "reconcilePolicy": ReconcilePolicy.SKIP_EXISTING.value,
                "projectDir": "./project",
                "baselineDependencies": dict(BASELINE_DEPENDENCIES),
            },
            "server": {"host": "0.0.0.0", "port": 8000},
        }

    def get_config(self) -> dict[str, Any]:
        """Get current configuration, with API keys filled from the environment"""
        # Reload config from file to ensure we have the latest
        self._config = self._load_config()
        config = copy.deepcopy(self._config)
        for provider, env_name in API_KEY_ENV.items():
            section = config.setdefault(provider, {})
            if not section.get("apiKey") and os.environ.get(env_name):
                section["apiKey"] = os.environ[env_name]
        return config

    def save_config(self, config: dict[str, Any]):
        """Save configuration to file"""
        self._config = _merge(self._config, config)

        self._config_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self._config_file, "w") as f:
                json.dump(self._config, f, indent=2)
        except OSError as e:
            raise RuntimeError(f"Failed to save config: {e}")

    def get(self, key: str, default=None):
        """Get specific config value"""
        return self._config.get(key, default)

    def set(self, key: str, value: Any):
        """Set specific config value"""
        self.save_config({key: value})


@dataclass
class GenerationSettings:
    """Typed view of the ``generation`` section"""

    timeout_ms: int = 180_000
    fix_timeout_ms: int = 120_000
    max_tokens: int = 32_000
    temperature: float = 0.7
    materialize_partial: bool = True
    reconstruction_policy: ReconstructionPolicy = ReconstructionPolicy.STRICT
    reconcile_policy: ReconcilePolicy = ReconcilePolicy.SKIP_EXISTING
    project_dir: str = "./project"
    baseline_dependencies: dict[str, str] = field(default_factory=lambda: dict(BASELINE_DEPENDENCIES))

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "GenerationSettings":
        section = config.get("generation", {})
        defaults = cls()
        return cls(
            timeout_ms=int(section.get("timeoutMs", defaults.timeout_ms)),
            fix_timeout_ms=int(section.get("fixTimeoutMs", defaults.fix_timeout_ms)),
            max_tokens=int(section.get("maxTokens", defaults.max_tokens)),
            temperature=float(section.get("temperature", defaults.temperature)),
            materialize_partial=bool(section.get("materializePartial", defaults.materialize_partial)),
            reconstruction_policy=ReconstructionPolicy(
                section.get("reconstructionPolicy", defaults.reconstruction_policy.value)
            ),
            reconcile_policy=ReconcilePolicy(section.get("reconcilePolicy", defaults.reconcile_policy.value)),
            project_dir=str(section.get("projectDir", defaults.project_dir)),
            baseline_dependencies=dict(section.get("baselineDependencies", defaults.baseline_dependencies)),
        )
