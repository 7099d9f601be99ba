"""Pack index builder: canonicalized segments -> numbered voice entries and lookup indices."""

import logging
import os
import re

from voiceover.canonicalizer import canon_display, canonicalize
from voiceover.constants import ASSETS_DIR, DEFAULT_AUDIO_EXTENSION, FORMAT_CURRENT
from voiceover.languages import canon_lang
from voiceover.models import Gender, RawLine, Segment, VoiceEntry, VoicePack

logger = logging.getLogger(__name__)

_NUMBERED_STEM_RE = re.compile(r"^(\d+)(?:_[a-z]+)?$")


def audio_path_for(character: str, language: str, number: int, gender: Gender, extension: str) -> str:
    """Relative audio path for the n-th template entry.

    (Abigail, en, 12, FEMALE, ogg) -> "assets/en/Abigail/12_female.ogg"
    """
    tail = f"_{gender.tag}" if gender.tag else ""
    return f"{ASSETS_DIR}/{language}/{character}/{number}{tail}.{extension.lstrip('.')}"


def index_entries(entries: list[VoiceEntry]) -> tuple[dict[str, str], dict[tuple[str, int], str]]:
    """Build the DisplayPattern and (TranslationKey, PageIndex) indices.

    Used by the builder and the pack loader alike; the first entry for a key wins.
    """
    by_display: dict[str, str] = {}
    by_key_page: dict[tuple[str, int], str] = {}
    for entry in entries:
        if not entry.audio_path:
            continue
        display_key = canon_display(entry.display_pattern)
        if display_key and display_key not in by_display:
            by_display[display_key] = entry.audio_path
        if entry.translation_key:
            by_key_page.setdefault((entry.translation_key, entry.page_index), entry.audio_path)
    return by_display, by_key_page


def format_major_of(format_tag: str | None) -> int:
    """Leading integer of a format tag ("2.0.0" -> 2); anything unparsable is 1."""
    if not format_tag or not format_tag.strip():
        return 1
    head = format_tag.strip().split(".")[0]
    return max(1, int(head)) if head.isdigit() else 1


class PackBuilder:
    """Accumulates voice entries for one (character, language) pack."""

    def __init__(
        self,
        character: str,
        language: str,
        start_number: int = 1,
        extension: str = DEFAULT_AUDIO_EXTENSION,
        pack_id: str = "",
        pack_name: str = "",
    ):
        self.character = character
        self.language = canon_lang(language)
        self.extension = extension.lstrip(".")
        self.pack_id = pack_id or f"{character}.{self.language}"
        self.pack_name = pack_name or f"{character} ({self.language})"
        self.next_number = start_number
        self.entries: list[VoiceEntry] = []
        self.skipped = 0
        self._audio_by_display: dict[str, str] = {}

    def add(self, segment: Segment, translation_key: str | None = None, provenance: str = "") -> VoiceEntry | None:
        """Add one segment. Returns None (and logs) when it cannot be indexed."""
        display_key = canon_display(segment.display_text)
        if not display_key:
            logger.warning(
                "Skipping %s page %d for %s [%s]: empty DisplayPattern",
                provenance or translation_key or "<unknown source>",
                segment.page_index, self.character, self.language,
            )
            self.skipped += 1
            return None

        audio_path = self._audio_by_display.get(display_key)
        if audio_path is None:
            audio_path = audio_path_for(
                self.character, self.language, self.next_number, segment.gender, self.extension,
            )
            self._audio_by_display[display_key] = audio_path
            self.next_number += 1
        else:
            logger.debug("Repeated DisplayPattern %r reuses %s", display_key, audio_path)

        entry = VoiceEntry(
            display_pattern=segment.display_text,
            audio_path=audio_path,
            translation_key=translation_key or None,
            page_index=segment.page_index,
            gender=segment.gender,
            provenance=provenance,
            dialogue_text=segment.actor_text,
        )
        self.entries.append(entry)
        return entry

    def add_raw_line(
        self,
        raw_line: RawLine,
        translation_key: str | None = None,
        split_line_breaks: bool = False,
    ) -> list[VoiceEntry]:
        """Canonicalize one adapter line and add every resulting segment."""
        added = []
        for segment in canonicalize(raw_line.text, split_line_breaks=split_line_breaks):
            entry = self.add(segment, translation_key, provenance=raw_line.source_key)
            if entry is not None:
                added.append(entry)
        return added

    def build(self) -> VoicePack:
        by_display, by_key_page = index_entries(self.entries)
        return VoicePack(
            character=self.character,
            language=self.language,
            format_major=format_major_of(FORMAT_CURRENT),
            entries=list(self.entries),
            entries_by_display_pattern=by_display,
            entries_by_translation_key_page=by_key_page,
            pack_id=self.pack_id,
            pack_name=self.pack_name,
        )


def build_pack_from_lines(
    character: str,
    language: str,
    lines,
    start_number: int = 1,
    extension: str = DEFAULT_AUDIO_EXTENSION,
    pack_id: str = "",
    pack_name: str = "",
) -> VoicePack:
    """Build a pack from adapter lines (see sources.adapter_line)."""
    builder = PackBuilder(character, language, start_number, extension, pack_id, pack_name)
    for line in lines:
        builder.add_raw_line(line.raw_line, line.translation_key, line.split_line_breaks)
    if builder.skipped:
        logger.info("%s [%s]: %d segment(s) skipped", character, builder.language, builder.skipped)
    return builder.build()


def next_free_number(pack: VoicePack) -> int:
    """One past the highest numbered audio file referenced by the pack."""
    highest = 0
    for entry in pack.entries:
        stem = os.path.splitext(os.path.basename(entry.audio_path))[0]
        match = _NUMBERED_STEM_RE.match(stem)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def append_new_entries(
    pack: VoicePack,
    candidates: list[VoiceEntry],
    start_number: int | None = None,
    extension: str = DEFAULT_AUDIO_EXTENSION,
) -> list[VoiceEntry]:
    """Append candidates whose DisplayPattern the pack does not have yet.

    New entries are numbered from start_number (default: after the highest
    existing number) in a stable order; existing entries are never touched.
    Returns the entries that were added and re-indexes the pack.
    """
    number = next_free_number(pack) if start_number is None else start_number
    known = {canon_display(e.display_pattern) for e in pack.entries}
    known.discard("")

    ordered = sorted(
        candidates,
        key=lambda c: (canon_display(c.display_pattern), c.translation_key or "", c.page_index, c.gender.value),
    )
    added = []
    for cand in ordered:
        display_key = canon_display(cand.display_pattern)
        if not display_key or display_key in known:
            continue
        cand.audio_path = audio_path_for(pack.character, pack.language, number, cand.gender, extension)
        pack.entries.append(cand)
        known.add(display_key)
        added.append(cand)
        number += 1

    if added:
        pack.entries_by_display_pattern, pack.entries_by_translation_key_page = index_entries(pack.entries)
        logger.info("%s [%s]: +%d new entries", pack.character, pack.language, len(added))
    return added
