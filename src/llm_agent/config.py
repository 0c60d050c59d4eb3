from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    llm_api_key: str = ""
    promptlayer_api_key: str = ""
    llm_base_url: str = "https://openrouter.ai/api/v1"
    llm_model: str = "openai/gpt-4o-mini"
    llm_streaming: bool = True

    # Agent loop
    agent_max_thoughts: int = 10
    agent_temperature: float = 0.7

    # Root of the built-in file tools
    workdir: str = "."


settings = Settings()


@dataclass
class ModelConfig:
    model: str = ""
    temperature: float | None = None
    max_tokens: int | None = None
    base_url: str = ""
    streaming: bool = True


_MODEL_FIELDS = tuple(f.name for f in fields(ModelConfig))

_models_config_cache: dict | None = None


def _load_models_yaml() -> dict:
    """Parsed models.yaml (path from MODELS_CONFIG_PATH), {} when absent. Read once."""
    global _models_config_cache
    if _models_config_cache is None:
        path = Path(os.environ.get("MODELS_CONFIG_PATH", "models.yaml"))
        data: Any = {}
        if path.is_file():
            import yaml

            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        _models_config_cache = data
    return _models_config_cache


def _section(data: dict, *keys: str) -> dict:
    section: Any = data
    for key in keys:
        section = section.get(key) if isinstance(section, dict) else None
        if section is None:
            return {}
    if not isinstance(section, dict):
        raise ValueError(f"models.yaml: '{'.'.join(keys)}' must be a mapping")
    return {k: v for k, v in section.items() if k in _MODEL_FIELDS}


def get_model_config(agent_name: str = "") -> ModelConfig:
    """Model settings for ``agent_name``: the ``default:`` section of
    models.yaml overlaid with ``agents.<agent_name>:``.

    Without models.yaml (or for keys it leaves out) the values come from
    Settings.
    """
    config = ModelConfig(
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        streaming=settings.llm_streaming,
    )
    data = _load_models_yaml()
    config = replace(config, **_section(data, "default"))
    if agent_name:
        config = replace(config, **_section(data, "agents", agent_name))
    config.streaming = bool(config.streaming)
    return config
