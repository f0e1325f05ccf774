"""YAML config loader — reads agentchat.yml into AppConfig."""

from pathlib import Path

import yaml

from agentchat.schemas.config import AppConfig


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load and validate a config file; ``None`` yields the defaults.

    Raises ``FileNotFoundError`` if the path doesn't exist and
    ``pydantic.ValidationError`` if the YAML content is invalid.
    """
    if path is None:
        return AppConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = yaml.safe_load(path.read_text())
    if raw is None:
        # Empty file (or only comments) means "all defaults".
        return AppConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    # A section left with only commented-out keys loads as None.
    for key in ("generation", "defaults"):
        if key in raw and raw[key] is None:
            del raw[key]

    generation = raw.get("generation")
    if isinstance(generation, dict) and generation.get("allowed_keys") is None:
        generation.pop("allowed_keys", None)
        # Keep the configured key usable without forcing an explicit allow-list.
        if generation.get("api_key_name"):
            generation["allowed_keys"] = [generation["api_key_name"]]

    return AppConfig(**raw)
