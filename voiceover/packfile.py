"""Persisted voice pack documents: parse, load from disk, write."""

import json
import logging
import os

from voiceover.builder import format_major_of, index_entries
from voiceover.constants import FORMAT_LEGACY, PACK_MANIFEST_NAME
from voiceover.languages import canon_lang
from voiceover.models import Gender, VoiceEntry, VoicePack

logger = logging.getLogger(__name__)

_REQUIRED_PACK_FIELDS = ("VoicePackId", "VoicePackName", "Character", "Language")


class PackFormatError(ValueError):
    """A voice pack document is structurally invalid."""


def normalize_audio_path(path: str) -> str:
    return path.strip().replace("\\", "/")


def _parse_entry(record: dict, format_major: int) -> VoiceEntry | None:
    if not isinstance(record, dict):
        return None
    audio = record.get("AudioPath")
    if not audio or not str(audio).strip():
        return None

    dialogue_text = record.get("DialogueText") or ""
    if format_major >= 2:
        display = record.get("DisplayPattern") or dialogue_text
    else:
        display = dialogue_text

    page = record.get("PageIndex")
    return VoiceEntry(
        display_pattern=display,
        audio_path=normalize_audio_path(str(audio)),
        translation_key=record.get("TranslationKey") or None,
        page_index=int(page) if page is not None else 0,
        gender=Gender.parse(record.get("GenderVariant")),
        provenance=record.get("DialogueFrom") or "",
        dialogue_text=dialogue_text,
        ported_text=record.get("DialogueTextPortedFromV1"),
    )


def parse_pack_document(data: dict, base_path: str = "") -> list[VoicePack]:
    """Turn a parsed pack document into VoicePacks.

    Raises PackFormatError when the document has no VoicePacks list.
    Individual definitions missing required fields are skipped with a warning.
    """
    if not isinstance(data, dict) or not isinstance(data.get("VoicePacks"), list):
        raise PackFormatError("document has no 'VoicePacks' list")

    file_format = data.get("Format")
    packs = []
    for definition in data["VoicePacks"]:
        if not isinstance(definition, dict):
            logger.warning("Skipping non-object voice definition in %s", base_path or "<document>")
            continue
        missing = [k for k in _REQUIRED_PACK_FIELDS if not definition.get(k)]
        if missing or not isinstance(definition.get("Entries"), list):
            logger.warning(
                "Skipping voice definition %r in %s: missing %s",
                definition.get("VoicePackId", "N/A"), base_path or "<document>",
                ", ".join(missing) or "Entries",
            )
            continue

        major = format_major_of(definition.get("Format") or file_format or FORMAT_LEGACY)
        # a translation key anywhere means current-format semantics
        if any(isinstance(r, dict) and r.get("TranslationKey") for r in definition["Entries"]):
            major = max(major, 2)

        entries = []
        for record in definition["Entries"]:
            entry = _parse_entry(record, major)
            if entry is not None:
                entries.append(entry)

        by_display, by_key_page = index_entries(entries)
        packs.append(VoicePack(
            character=definition["Character"],
            language=canon_lang(definition["Language"]),
            format_major=major,
            entries=entries,
            entries_by_display_pattern=by_display,
            entries_by_translation_key_page=by_key_page,
            pack_id=definition["VoicePackId"],
            pack_name=definition["VoicePackName"],
            base_path=base_path,
        ))
    return packs


def load_pack_file(path: str) -> list[VoicePack]:
    """Load one pack document. Raises on unreadable, malformed or invalid files."""
    with open(path, encoding="utf-8-sig") as f:
        data = json.load(f)
    return parse_pack_document(data, base_path=os.path.dirname(os.path.abspath(path)))


def iter_pack_files(root: str) -> list[str]:
    """Every *.json under root except content-pack manifests, sorted."""
    found = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            if not name.lower().endswith(".json") or name.lower() == PACK_MANIFEST_NAME:
                continue
            found.append(os.path.join(dirpath, name))
    return sorted(found)


def load_pack_dir(root: str) -> list[VoicePack]:
    """Load every pack document under root; malformed files are logged and skipped."""
    packs = []
    for path in iter_pack_files(root):
        try:
            packs.extend(load_pack_file(path))
        except (json.JSONDecodeError, PackFormatError, OSError, ValueError) as e:
            logger.warning("Skipping pack file %s: %s", path, e)
    return packs


def entry_to_record(entry: VoiceEntry, format_major: int) -> dict:
    """Serialize one entry; null fields are omitted."""
    if format_major < 2:
        record = {
            "DialogueFrom": entry.provenance or None,
            "DialogueText": entry.dialogue_text or entry.display_pattern,
            "AudioPath": entry.audio_path,
        }
    else:
        record = {
            "DialogueFrom": entry.provenance or None,
            "DialogueText": entry.dialogue_text or None,
            "DisplayPattern": entry.display_pattern,
            "AudioPath": entry.audio_path,
            "TranslationKey": entry.translation_key,
            "PageIndex": entry.page_index,
            "GenderVariant": entry.gender.tag,
            "DialogueTextPortedFromV1": entry.ported_text,
        }
    return {k: v for k, v in record.items() if v is not None}


def pack_to_definition(pack: VoicePack) -> dict:
    return {
        "Format": f"{pack.format_major}.0.0",
        "VoicePackId": pack.pack_id,
        "VoicePackName": pack.pack_name,
        "Character": pack.character,
        "Language": pack.language,
        "Entries": [entry_to_record(e, pack.format_major) for e in pack.entries],
    }


def pack_document(packs: list[VoicePack]) -> dict:
    top = max((p.format_major for p in packs), default=format_major_of(FORMAT_LEGACY))
    return {
        "Format": f"{top}.0.0",
        "VoicePacks": [pack_to_definition(p) for p in packs],
    }


def write_pack_file(path: str, packs: list[VoicePack]) -> str:
    """Write packs as one indented JSON document. Returns the path written."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(pack_document(packs), f, indent=2, ensure_ascii=False)
    return path
