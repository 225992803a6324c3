"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- static defaults checked into the repo
  2. .env file           -- local developer overrides (not committed)
  3. Environment vars    -- set by the job scheduler at deploy time

The YAML file is grouped into sections for readability::

    chunking:
      target_tokens_max: 400
    embedding:
      provider: huggingface

Each section is flattened to ``<section>_<key>`` Settings fields, so the
example above sets ``chunk_target_tokens_max`` and ``embedding_provider``.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from src.config.settings import Settings
from src.utils.errors import ConfigurationError

# YAML section name -> Settings field prefix.
_SECTION_PREFIXES: dict[str, str] = {
    "chunking": "chunk_",
    "embedding": "embedding_",
    "openai": "openai_",
    "huggingface": "huggingface_",
    "chromadb": "chromadb_",
    "filesystem": "filesystem_",
    "app": "app_",
}


def load_config(path: str = "config/config.yaml") -> Settings:
    """Load YAML config and merge with environment-based Settings.

    A missing file is not an error; defaults and the environment apply.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Fully resolved Settings.

    Raises:
        ConfigurationError: If the YAML is malformed or a value fails
            validation.
    """
    config_path = Path(path)
    yaml_config: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(message=f"Invalid YAML in {path}: {exc}") from exc

    try:
        env_settings = Settings()
        # Fields set by the environment or .env win over the YAML layer.
        env_values = {name: getattr(env_settings, name) for name in env_settings.model_fields_set}
        return Settings(**{**_flatten(yaml_config), **env_values})
    except ValidationError as exc:
        raise ConfigurationError(message=f"Invalid configuration: {exc}") from exc


def _flatten(yaml_config: dict[str, Any]) -> dict[str, Any]:
    """Map nested YAML sections onto flat Settings field names."""
    known = set(Settings.model_fields)
    flat: dict[str, Any] = {}
    for key, value in yaml_config.items():
        prefix = _SECTION_PREFIXES.get(key)
        if prefix is not None and isinstance(value, dict):
            for sub_key, sub_value in value.items():
                name = f"{prefix}{sub_key}"
                if name in known:
                    flat[name] = sub_value
                elif sub_key in known:
                    flat[sub_key] = sub_value
        elif key in known:
            flat[key] = value
    return flat
