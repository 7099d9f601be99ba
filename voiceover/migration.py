"""Migrate legacy (format 1) voice packs onto a freshly built current-format baseline.

Each legacy entry is re-canonicalized as a single page and matched to a
baseline entry with the same DisplayPattern (case-insensitive lookup,
exact re-check). Matched audio is copied into the new layout as
Ported_<name>; anything that cannot be matched safely becomes a review
row with a specific reason, never a guess.
"""

import hashlib
import json
import logging
import os
import re
import shutil
from dataclasses import asdict, replace

from voiceover.canonicalizer import canon_display, canonicalize
from voiceover.constants import (
    ASSETS_DIR,
    CONFLICT_SUFFIX,
    ERR_ALL_CLAIMED,
    ERR_AUDIO_COPY_FAILED,
    ERR_AUDIO_NOT_FOUND,
    ERR_AUDIO_REUSED,
    ERR_EMPTY_PATTERN,
    ERR_NO_BASELINE,
    ERR_NO_MATCH,
    ERR_RECHECK_FAILED,
    FORMAT_CURRENT,
    OUTPUT_SUFFIX,
    PACK_MANIFEST_NAME,
    PORTED_PREFIX,
    REPORT_DIR,
)
from voiceover.builder import format_major_of, index_entries
from voiceover.models import MigrationRow, PackReport, VoiceEntry, VoicePack
from voiceover.packfile import PackFormatError, load_pack_file, normalize_audio_path, write_pack_file

logger = logging.getLogger(__name__)


def safe_name(s: str | None) -> str:
    """Filesystem-safe form of a character or language name."""
    if not s or not s.strip():
        return "(unknown)"
    return re.sub(r"[^\w.-]+", "_", s)


def sha1_of(path: str) -> str:
    h = hashlib.sha1()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def legacy_display_pattern(text: str | None) -> str:
    """Re-canonicalize legacy text as one page (one audio file per legacy entry)."""
    if not text or not text.strip():
        return ""
    segments = canonicalize(text, split_pages=False)
    return canon_display(segments[0].display_text) if segments else ""


def port_audio(src: str, dest_dir: str) -> str:
    """Copy src into dest_dir as Ported_<stem><ext>; returns the file name used.

    An existing file with identical content is reused; a different file of
    the same name pushes the copy to Ported_<stem>-conflict-N<ext>.
    """
    stem, ext = os.path.splitext(os.path.basename(src))
    ext = ext.lower()
    name = f"{PORTED_PREFIX}{stem}{ext}"
    dest = os.path.join(dest_dir, name)
    src_hash = sha1_of(src)

    n = 1
    while os.path.exists(dest):
        if sha1_of(dest) == src_hash:
            return name
        name = f"{PORTED_PREFIX}{stem}{CONFLICT_SUFFIX}{n}{ext}"
        dest = os.path.join(dest_dir, name)
        n += 1

    os.makedirs(dest_dir, exist_ok=True)
    shutil.copyfile(src, dest)
    return name


def _find_source(legacy_root: str, rel_path: str, language: str, character: str) -> str | None:
    rel = normalize_audio_path(rel_path)
    direct = rel if os.path.isabs(rel) else os.path.join(legacy_root, *rel.split("/"))
    if os.path.isfile(direct):
        return direct
    fallback = os.path.join(legacy_root, ASSETS_DIR, language, safe_name(character), os.path.basename(rel))
    if os.path.isfile(fallback):
        return fallback
    return None


def migrate_pack(
    legacy_pack: VoicePack,
    legacy_root: str,
    baseline_pack: VoicePack,
    output_root: str,
    source_file: str = "",
) -> tuple[VoicePack, PackReport]:
    """Map one legacy pack onto its baseline. Returns the migrated pack and its report."""
    character = baseline_pack.character
    language = baseline_pack.language
    report = PackReport(source_file=source_file, character=character, language=language)
    summary = report.summary

    entries = [replace(e) for e in baseline_pack.entries]
    summary.baseline_entries = len(entries)

    candidates_by_pattern: dict[str, list[int]] = {}
    for idx, entry in enumerate(entries):
        dp = canon_display(entry.display_pattern)
        if dp:
            candidates_by_pattern.setdefault(dp.lower(), []).append(idx)

    claimed: set[int] = set()
    ported_sources: dict[str, str] = {}  # source file -> DisplayPattern it was ported for
    char_dir = safe_name(character)
    dest_dir = os.path.join(output_root, ASSETS_DIR, language, char_dir)

    def review(legacy: VoiceEntry, dp: str, error: str) -> None:
        summary.needs_review += 1
        report.needs_review.append(MigrationRow(
            source_file=source_file,
            character=character,
            language=language,
            legacy_text=legacy.dialogue_text,
            legacy_display_pattern=dp,
            legacy_audio_path=legacy.audio_path,
            error=error,
        ))
        logger.debug("Review %s [%s] %r: %s", character, language, dp, error)

    for legacy in legacy_pack.entries:
        summary.legacy_entries += 1
        dp = legacy_display_pattern(legacy.dialogue_text or legacy.display_pattern)
        if not dp:
            review(legacy, dp, ERR_EMPTY_PATTERN)
            continue

        indices = candidates_by_pattern.get(dp.lower())
        if not indices:
            review(legacy, dp, ERR_NO_MATCH)
            continue

        chosen = next((i for i in indices if i not in claimed), None)
        if chosen is None:
            review(legacy, dp, ERR_ALL_CLAIMED)
            continue

        target = entries[chosen]
        if canon_display(target.display_pattern) != dp:
            review(legacy, dp, ERR_RECHECK_FAILED)
            continue

        src = _find_source(legacy_root, legacy.audio_path, legacy_pack.language, legacy_pack.character)
        if src is None:
            review(legacy, dp, ERR_AUDIO_NOT_FOUND)
            continue

        src_key = os.path.normcase(os.path.abspath(src))
        previous = ported_sources.get(src_key)
        if previous is not None and previous != dp:
            review(legacy, dp, ERR_AUDIO_REUSED)
            continue

        try:
            name = port_audio(src, dest_dir)
        except OSError as e:
            logger.warning("Failed to copy audio %s: %s", src, e)
            review(legacy, dp, ERR_AUDIO_COPY_FAILED)
            continue

        ported_sources[src_key] = dp
        claimed.add(chosen)
        entries[chosen] = replace(
            target,
            audio_path=f"{ASSETS_DIR}/{language}/{char_dir}/{name}",
            ported_text=legacy.dialogue_text,
        )
        summary.matched += 1

    by_display, by_key_page = index_entries(entries)
    migrated = VoicePack(
        character=character,
        language=language,
        format_major=format_major_of(FORMAT_CURRENT),
        entries=entries,
        entries_by_display_pattern=by_display,
        entries_by_translation_key_page=by_key_page,
        pack_id=baseline_pack.pack_id,
        pack_name=baseline_pack.pack_name,
        base_path=output_root,
    )
    logger.info(
        "%s [%s]: %d legacy, %d baseline, %d matched, %d need review",
        character, language, summary.legacy_entries, summary.baseline_entries,
        summary.matched, summary.needs_review,
    )
    return migrated, report


def report_document(report: PackReport) -> dict:
    s = report.summary
    return {
        "File": report.source_file,
        "Character": report.character,
        "Language": report.language,
        "Summary": {
            "LegacyEntries": s.legacy_entries,
            "BaselineEntries": s.baseline_entries,
            "Matched": s.matched,
            "NeedsReview": s.needs_review,
            "SkippedFiles": s.skipped_files,
        },
        "NeedsReview": [
            {
                "File": row.source_file,
                "Character": row.character,
                "Language": row.language,
                "LegacyText": row.legacy_text,
                "LegacyDisplayPattern": row.legacy_display_pattern,
                "LegacyAudioPath": row.legacy_audio_path,
                "Error": row.error,
            }
            for row in report.needs_review
        ],
    }


def write_report(report_dir: str, report: PackReport) -> str:
    """Write one report per (character, language). Returns the path."""
    os.makedirs(report_dir, exist_ok=True)
    path = os.path.join(report_dir, f"{safe_name(report.character)}_{safe_name(report.language)}.json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report_document(report), f, indent=2, ensure_ascii=False)
    return path


def _load_baseline(baseline_dir: str, character: str, language: str) -> VoicePack | None:
    path = os.path.join(baseline_dir, f"{safe_name(character)}_{language}.json")
    if not os.path.exists(path):
        return None
    try:
        packs = load_pack_file(path)
    except (json.JSONDecodeError, PackFormatError, OSError, ValueError) as e:
        logger.warning("Unreadable baseline %s: %s", path, e)
        return None
    for pack in packs:
        if pack.character.lower() == character.lower() and pack.language == language:
            return pack
    return None


def default_output_dir(legacy_dir: str) -> str:
    return os.path.normpath(legacy_dir) + OUTPUT_SUFFIX


def migrate_folder(legacy_dir: str, baseline_dir: str, output_dir: str | None = None) -> list[PackReport]:
    """Migrate every legacy pack document in legacy_dir (top level only).

    Writes migrated documents under the same file names in output_dir and
    one report per (character, language) under output_dir/Port_report/.
    """
    output_dir = output_dir or default_output_dir(legacy_dir)
    report_dir = os.path.join(output_dir, REPORT_DIR)
    os.makedirs(output_dir, exist_ok=True)

    legacy_files = sorted(
        os.path.join(legacy_dir, name)
        for name in os.listdir(legacy_dir)
        if name.lower().endswith(".json") and name.lower() != PACK_MANIFEST_NAME
    )
    if not legacy_files:
        logger.warning("No legacy pack documents in %s", legacy_dir)

    reports = []
    for path in legacy_files:
        try:
            legacy_packs = load_pack_file(path)
        except (json.JSONDecodeError, PackFormatError, OSError, ValueError) as e:
            logger.warning("Skipping legacy file %s: %s", path, e)
            os.makedirs(report_dir, exist_ok=True)
            stem = os.path.splitext(os.path.basename(path))[0]
            with open(os.path.join(report_dir, f"{stem}.json"), "w", encoding="utf-8") as f:
                json.dump({"File": path, "Error": str(e)}, f, indent=2)
            continue

        migrated_packs = []
        for legacy in legacy_packs:
            baseline = _load_baseline(baseline_dir, legacy.character, legacy.language)
            if baseline is None:
                report = PackReport(source_file=path, character=legacy.character, language=legacy.language)
                report.summary.legacy_entries = len(legacy.entries)
                report.summary.skipped_files = 1
                report.needs_review.append(MigrationRow(
                    source_file=path,
                    character=legacy.character,
                    language=legacy.language,
                    legacy_text=None,
                    legacy_display_pattern=None,
                    legacy_audio_path=None,
                    error=ERR_NO_BASELINE,
                ))
                logger.warning("No baseline for %s [%s]", legacy.character, legacy.language)
            else:
                pack, report = migrate_pack(legacy, os.path.dirname(path), baseline, output_dir, path)
                migrated_packs.append(pack)
            write_report(report_dir, report)
            reports.append(report)

        if migrated_packs:
            write_pack_file(os.path.join(output_dir, os.path.basename(path)), migrated_packs)
    return reports


def summarize(reports: list[PackReport]) -> dict:
    """Totals across reports, keyed like the MigrationSummary fields."""
    totals: dict[str, int] = {}
    for report in reports:
        for key, value in asdict(report.summary).items():
            totals[key] = totals.get(key, 0) + value
    return totals
