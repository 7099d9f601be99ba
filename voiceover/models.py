"""Data models for canonicalized dialogue, voice packs and migration."""

from dataclasses import dataclass, field
from enum import Enum


class Gender(Enum):
    NONE = ""
    MALE = "male"
    FEMALE = "female"
    NONBINARY = "nonbinary"

    @classmethod
    def parse(cls, value: str | None) -> "Gender":
        """Parse a persisted gender tag; absent or unknown tags mean NONE."""
        if not value:
            return cls.NONE
        value = value.strip().lower()
        if value == "neutral":
            return cls.NONBINARY
        for member in cls:
            if member.value == value:
                return member
        return cls.NONE

    @property
    def tag(self) -> str | None:
        """Persisted form: None for NONE, otherwise the lowercase name."""
        return self.value or None


@dataclass(frozen=True)
class RawLine:
    source_key: str
    language: str
    text: str


@dataclass(frozen=True)
class Segment:
    page_index: int
    actor_text: str        # human/production reference, never a lookup key
    display_text: str      # canonical matching key (DisplayPattern)
    gender: Gender = Gender.NONE


@dataclass
class VoiceEntry:
    display_pattern: str
    audio_path: str
    translation_key: str | None = None
    page_index: int = 0
    gender: Gender = Gender.NONE
    provenance: str = ""
    dialogue_text: str = ""
    ported_text: str | None = None


@dataclass
class VoicePack:
    character: str
    language: str
    format_major: int
    entries: list[VoiceEntry] = field(default_factory=list)
    entries_by_display_pattern: dict[str, str] = field(default_factory=dict)
    entries_by_translation_key_page: dict[tuple[str, int], str] = field(default_factory=dict)
    pack_id: str = ""
    pack_name: str = ""
    base_path: str = ""

    @property
    def audio_index(self) -> dict[str, list[VoiceEntry]]:
        """Reverse table: audio path -> entries that use it."""
        index: dict[str, list[VoiceEntry]] = {}
        for entry in self.entries:
            index.setdefault(entry.audio_path, []).append(entry)
        return index


@dataclass
class Capture:
    """Dynamic words substituted into the live text for one page.

    `tokens` maps a captured word to the script sigil it replaced
    ("@", "%farm", "%pet", ...); `words` is every word that should be
    stripped before matching.
    """

    words: set[str] = field(default_factory=set)
    tokens: dict[str, str] = field(default_factory=dict)

    def add(self, *words: str | None) -> None:
        for word in words:
            if word and word.strip():
                self.words.add(word.strip())

    def add_token(self, word: str | None, sigil: str) -> None:
        if word and word.strip():
            self.words.add(word.strip())
            self.tokens[word.strip()] = sigil


@dataclass
class MigrationRow:
    source_file: str
    character: str
    language: str
    legacy_text: str | None
    legacy_display_pattern: str | None
    legacy_audio_path: str | None
    error: str | None = None


@dataclass
class MigrationSummary:
    legacy_entries: int = 0
    baseline_entries: int = 0
    matched: int = 0
    needs_review: int = 0
    skipped_files: int = 0


@dataclass
class PackReport:
    source_file: str
    character: str
    language: str
    summary: MigrationSummary = field(default_factory=MigrationSummary)
    needs_review: list[MigrationRow] = field(default_factory=list)
