"""Source categories and the adapter contract: (source, language, raw text, translation key)."""

import json
import logging
import os
from dataclasses import dataclass
from enum import Enum

from voiceover.constants import (
    BUBBLE_FARM_PLACEHOLDER,
    BUBBLE_FARMER_PLACEHOLDER,
    DEFAULT_LANGUAGE,
    PLAYER_NAME_SIGIL,
)
from voiceover.models import RawLine

logger = logging.getLogger(__name__)


class SourceCategory(Enum):
    CHARACTER_DIALOGUE = "CharacterDialogue"
    MARRIAGE = "Marriage"
    EVENT = "Event"
    FESTIVAL = "Festival"
    STRINGS = "Strings"
    GIFT_TASTE = "GiftTaste"
    MOVIE_REACTION = "MovieReaction"
    EXTRA_DIALOGUE = "ExtraDialogue"
    SPEECH_BUBBLE = "SpeechBubble"
    RAINY = "Rainy"

    @classmethod
    def parse(cls, value: str) -> "SourceCategory":
        """Accept either the member name or its value, case-insensitively."""
        norm = value.strip().replace("-", "_").lower()
        for member in cls:
            if norm in (member.name.lower(), member.value.lower()):
                return member
        raise ValueError(f"Unknown source category: {value!r}")


@dataclass(frozen=True)
class SourceKey:
    """Where a raw line came from.

    `owner` is the sheet/location/festival the line belongs to and `key`
    the entry within it; `speak_index` numbers lines embedded in scripts
    (events, festival scenes) that have no sheet key of their own.
    """

    category: SourceCategory
    owner: str
    key: str
    speak_index: int | None = None

    def translation_key(self) -> str | None:
        c = SourceCategory
        if self.category is c.SPEECH_BUBBLE:
            return None
        if self.category in (c.CHARACTER_DIALOGUE, c.MARRIAGE):
            return f"Characters/Dialogue/{self.owner}:{self.key}"
        if self.category is c.RAINY:
            return f"Characters/Dialogue/rainy:{self.key}"
        if self.category is c.EVENT:
            return f"Events/{self.owner}:{self.key}:s{self.speak_index or 0}"
        if self.category is c.FESTIVAL:
            if self.speak_index is not None:
                return f"Festivals/{self.owner}:{self.key}:s{self.speak_index}"
            return f"Data/Festivals/{self.owner}:{self.key}"
        if self.category is c.STRINGS:
            return f"Strings/{self.owner}:{self.key}"
        if self.category is c.GIFT_TASTE:
            return f"Data/NPCGiftTastes:{self.owner}:{self.key}"
        if self.category is c.MOVIE_REACTION:
            return f"Data/MoviesReactions:{self.owner}:{self.key}"
        return f"Data/ExtraDialogue:{self.key}"

    def provenance(self) -> str:
        base = f"{self.category.value}/{self.owner}/{self.key}"
        return base if self.speak_index is None else f"{base}:s{self.speak_index}"

    @classmethod
    def from_dict(cls, data: dict) -> "SourceKey":
        speak = data.get("SpeakIndex")
        return cls(
            category=SourceCategory.parse(data["Category"]),
            owner=str(data.get("Owner", "")),
            key=str(data.get("Key", "")),
            speak_index=int(speak) if speak is not None else None,
        )


@dataclass(frozen=True)
class AdapterLine:
    raw_line: RawLine
    translation_key: str | None
    split_line_breaks: bool = False


def adapter_line(
    source: SourceKey,
    language: str,
    raw_text: str,
    translation_key: str | None = None,
) -> AdapterLine:
    """The adapter contract: one harvested line, ready for the builder.

    An explicit translation key overrides the one derived from the source.
    Event scripts treat intra-page line breaks as page breaks.
    """
    text = raw_text or ""
    if source.category is SourceCategory.SPEECH_BUBBLE:
        text = bubble_raw_text(text)
    return AdapterLine(
        raw_line=RawLine(source_key=source.provenance(), language=language, text=text),
        translation_key=translation_key or source.translation_key(),
        split_line_breaks=source.category is SourceCategory.EVENT,
    )


def bubble_raw_text(text: str) -> str:
    """Speech bubbles format the farmer/farm name as {0}/{1}; map them to script sigils."""
    return text.replace(BUBBLE_FARMER_PLACEHOLDER, PLAYER_NAME_SIGIL).replace(BUBBLE_FARM_PLACEHOLDER, "%farm")


def key_targets_character(key: str, character: str) -> bool:
    """True if a speech-bubble key names the character ("SeedShop_Pierre_Greeting1")."""
    if not key or not character:
        return False
    k = key.lower()
    n = character.lower()
    return f"_{n}_" in k or k.endswith(f"_{n}") or k.startswith(f"{n}_")


def _sheet_path(sheet_dir: str, asset: str, language: str) -> str:
    suffix = "" if language.lower() == DEFAULT_LANGUAGE else f".{language}"
    return os.path.join(sheet_dir, *asset.split("/")) + suffix + ".json"


def load_sheet(sheet_dir: str, asset: str, language: str, default_language: str = DEFAULT_LANGUAGE) -> dict:
    """Load a key -> raw text content sheet with locale fallback.

    Tries the requested language first, then the default language. A sheet
    that does not exist in either is not an error: returns {}.
    """
    for lang in dict.fromkeys((language, default_language)):
        path = _sheet_path(sheet_dir, asset, lang)
        if not os.path.exists(path):
            continue
        try:
            with open(path, encoding="utf-8-sig") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Malformed content sheet: %s, skipping", path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Content sheet is not a key/value object: %s", path)
            return {}
        if lang != language:
            logger.debug("Sheet %s [%s] missing, using %s", asset, language, lang)
        return {str(k): v for k, v in data.items() if isinstance(v, str)}
    logger.debug("No sheet for %s in %s or %s", asset, language, default_language)
    return {}


def lines_from_sheet(
    sheet: dict,
    category: SourceCategory,
    owner: str,
    language: str,
    character: str | None = None,
) -> list[AdapterLine]:
    """Adapter lines for every non-empty entry of a sheet.

    Speech-bubble sheets hold every character's bubbles, so only keys that
    target `character` are kept.
    """
    lines = []
    for key, raw in sheet.items():
        key = key.strip()
        if not key or not raw or not raw.strip():
            continue
        if category is SourceCategory.SPEECH_BUBBLE and not key_targets_character(key, character or ""):
            continue
        lines.append(adapter_line(SourceKey(category, owner, key), language, raw))
    return lines
