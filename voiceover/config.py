"""User configuration: language, volume, selected packs and debounce settings."""

import json
import logging
import os
from dataclasses import asdict, dataclass, field

from voiceover.constants import (
    DEFAULT_LANGUAGE,
    DIALOGUE_CLOSE_DEBOUNCE_TICKS,
    HOUSEKEEPING_INTERVAL_TICKS,
    MASTER_VOLUME,
    TEXT_STABILIZE_TICKS,
)

logger = logging.getLogger(__name__)

# persisted key -> dataclass field
_KEYS = {
    "DefaultLanguage": "default_language",
    "MasterVolume": "master_volume",
    "FallbackToDefaultIfMissing": "fallback_to_default_if_missing",
    "SelectedVoicePacks": "selected_voice_packs",
    "DeveloperMode": "developer_mode",
    "TextStabilizeTicks": "text_stabilize_ticks",
    "DialogueCloseDebounceTicks": "dialogue_close_debounce_ticks",
    "HousekeepingInterval": "housekeeping_interval",
}


@dataclass
class VoiceConfig:
    default_language: str = DEFAULT_LANGUAGE
    master_volume: float = MASTER_VOLUME
    fallback_to_default_if_missing: bool = False
    selected_voice_packs: dict[str, str] = field(default_factory=dict)  # character -> pack id
    developer_mode: bool = False
    text_stabilize_ticks: int = TEXT_STABILIZE_TICKS
    dialogue_close_debounce_ticks: int = DIALOGUE_CLOSE_DEBOUNCE_TICKS
    housekeeping_interval: int = HOUSEKEEPING_INTERVAL_TICKS

    def selected_pack_id(self, character: str) -> str | None:
        for name, pack_id in self.selected_voice_packs.items():
            if name.lower() == character.lower():
                return pack_id or None
        return None


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"not a boolean: {value!r}")


def config_from_dict(data: dict) -> VoiceConfig:
    """Build a config from a persisted document; unknown keys are ignored."""
    defaults = VoiceConfig()
    kwargs = {}
    for key, attr in _KEYS.items():
        if key not in data:
            continue
        value = data[key]
        expected = type(getattr(defaults, attr))
        try:
            if expected is bool:
                kwargs[attr] = _as_bool(value)
            elif expected is dict:
                kwargs[attr] = {str(k): str(v) for k, v in dict(value).items()}
            else:
                kwargs[attr] = expected(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid config value %s=%r", key, value)
    config = VoiceConfig(**kwargs)
    config.master_volume = min(max(config.master_volume, 0.0), 1.0)
    for attr in ("text_stabilize_ticks", "dialogue_close_debounce_ticks", "housekeeping_interval"):
        setattr(config, attr, max(1, getattr(config, attr)))
    return config


def config_to_dict(config: VoiceConfig) -> dict:
    values = asdict(config)
    return {key: values[attr] for key, attr in _KEYS.items()}


def load_config(path: str) -> VoiceConfig:
    """Load config.json. Missing file -> defaults; malformed file -> warning + defaults."""
    if not os.path.exists(path):
        logger.debug("No config at %s, using defaults", path)
        return VoiceConfig()
    try:
        with open(path, encoding="utf-8-sig") as f:
            data = json.load(f)
    except json.JSONDecodeError:
        logger.warning("Malformed config file: %s, using defaults", path)
        return VoiceConfig()
    if not isinstance(data, dict):
        logger.warning("Config file is not an object: %s, using defaults", path)
        return VoiceConfig()
    return config_from_dict(data)


def save_config(path: str, config: VoiceConfig) -> str:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config_to_dict(config), f, indent=2)
    return path

