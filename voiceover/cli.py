"""CLI interface with subcommand routing."""

import argparse
import json
import logging
import os
import sys

from voiceover.builder import PackBuilder, append_new_entries, build_pack_from_lines
from voiceover.config import load_config
from voiceover.constants import (
    CONFIG_FILE,
    DEFAULT_AUDIO_EXTENSION,
    SUPPORTED_AUDIO_EXTENSIONS,
    VANILLA_CHARACTERS,
    VERSION,
)
from voiceover.dictionary import MultilingualDictionary
from voiceover.languages import canon_lang
from voiceover.migration import default_output_dir, migrate_folder, safe_name, summarize
from voiceover.packfile import PackFormatError, iter_pack_files, load_pack_file, write_pack_file
from voiceover.resolver import Resolver
from voiceover.session import VoiceLibrary
from voiceover.sources import SourceKey, adapter_line


def _load_packs_or_exit(path: str) -> list:
    if not os.path.exists(path):
        print(f"Error: File not found: {path}", file=sys.stderr)
        raise SystemExit(1)
    try:
        return load_pack_file(path)
    except (json.JSONDecodeError, PackFormatError, OSError, ValueError) as e:
        print(f"Error: Could not read pack file {path}: {e}", file=sys.stderr)
        raise SystemExit(1)


def _read_lines(path: str, character: str | None, language: str | None) -> tuple[str, str, list]:
    """Read an adapter-lines document.

    {"Character": ..., "Language": ..., "Lines": [{"Category", "Owner", "Key",
    "SpeakIndex"?, "Text", "TranslationKey"?}, ...]}; flags override the header.
    """
    if not os.path.exists(path):
        print(f"Error: File not found: {path}", file=sys.stderr)
        raise SystemExit(1)
    try:
        with open(path, encoding="utf-8-sig") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        print(f"Error: Malformed lines file {path}: {e}", file=sys.stderr)
        raise SystemExit(1)

    character = character or data.get("Character")
    language = canon_lang(language or data.get("Language"))
    if not character:
        print("Error: no character given (use --character or a 'Character' field)", file=sys.stderr)
        raise SystemExit(1)

    lines = []
    for record in data.get("Lines", []):
        try:
            source = SourceKey.from_dict(record)
        except (KeyError, ValueError) as e:
            print(f"Warning: skipping line {record!r}: {e}", file=sys.stderr)
            continue
        lines.append(adapter_line(source, language, record.get("Text", ""), record.get("TranslationKey")))
    return character, language, lines


def cmd_build(args):
    """Build a pack document from adapter lines."""
    character, language, lines = _read_lines(args.lines, args.character, args.language)
    pack = build_pack_from_lines(
        character, language, lines,
        start_number=args.start, extension=args.ext,
        pack_id=args.pack_id or "", pack_name=args.pack_name or "",
    )
    output = args.output or f"{safe_name(character)}_{language}.json"
    write_pack_file(output, [pack])
    unique_audio = len(pack.audio_index)
    print(f"Built {pack.pack_id}: {len(pack.entries)} entries, {unique_audio} audio files")
    print(f"Written to {output}")


def cmd_update(args):
    """Append entries for new lines to an existing pack document."""
    packs = _load_packs_or_exit(args.pack)
    character, language, lines = _read_lines(args.lines, args.character, args.language)
    target = next(
        (p for p in packs if p.character.lower() == character.lower() and p.language == language),
        None,
    )
    if target is None:
        print(f"Error: {args.pack} has no pack for {character} [{language}]", file=sys.stderr)
        raise SystemExit(1)

    fresh = PackBuilder(character, language, extension=args.ext)
    for line in lines:
        fresh.add_raw_line(line.raw_line, line.translation_key, line.split_line_breaks)
    added = append_new_entries(target, fresh.entries, extension=args.ext)
    if added:
        write_pack_file(args.pack, packs)
    print(f"Added {len(added)} new entries to {target.pack_id}")


def cmd_inspect(args):
    """Summarize pack documents, report missing audio and list voiced characters."""
    paths = iter_pack_files(args.path) if os.path.isdir(args.path) else [args.path]
    if not paths:
        print("No pack documents found.")
        return
    total_missing = 0
    by_character: dict[str, list] = {}
    for path in paths:
        try:
            packs = load_pack_file(path)
        except (json.JSONDecodeError, PackFormatError, OSError, ValueError) as e:
            print(f"  [bad ] {path}: {e}")
            continue
        for pack in packs:
            by_character.setdefault(pack.character, []).append(pack)
            missing = [
                rel for rel in pack.audio_index
                if not os.path.exists(os.path.join(pack.base_path, *rel.split("/")))
            ]
            total_missing += len(missing)
            print(f"{pack.pack_id} ({pack.character} [{pack.language}], format {pack.format_major})")
            print(f"  entries: {len(pack.entries)}  audio: {len(pack.audio_index)}  missing: {len(missing)}")
            if args.missing:
                for rel in missing:
                    print(f"    - {rel}")
    if args.characters:
        print_characters(by_character)
    if total_missing and args.strict:
        raise SystemExit(1)


def print_characters(by_character: dict[str, list]) -> None:
    """One line per voiced character: vanilla or modded, then language and pack id of each pack."""
    vanilla = {name.lower() for name in VANILLA_CHARACTERS}
    print(f"Characters: {len(by_character)}")
    for character in sorted(by_character, key=str.lower):
        kind = "vanilla" if character.lower() in vanilla else "modded"
        packs = sorted(by_character[character], key=lambda p: (p.language, p.pack_id))
        listed = ", ".join(f"{p.language} ({p.pack_id})" for p in packs)
        print(f"  {character} [{kind}]: {listed}")


def cmd_resolve(args):
    """Resolve one displayed line against installed packs and print the outcome."""
    config = load_config(args.config or os.path.join(args.packs, CONFIG_FILE))
    if args.pack_id:
        config.selected_voice_packs[args.speaker] = args.pack_id
    library = VoiceLibrary(config)
    if library.load_dir(args.packs) == 0:
        print(f"Error: No voice packs found in {args.packs}", file=sys.stderr)
        raise SystemExit(1)

    dictionary = MultilingualDictionary(args.dictionary or args.packs)
    resolver = Resolver(library, dictionary, config=config)
    resolver.session_id = "cli"
    result = resolver.resolve(
        args.speaker, args.text, args.language,
        translation_key=args.translation_key, page=args.page, is_bubble=args.bubble,
    )
    print(f"Outcome: {result.outcome.value}")
    print(f"Key:     {result.display_key!r}")
    if result.audio_path:
        print(f"Audio:   {result.audio_path}")
    if result.detail:
        print(f"Detail:  {result.detail}")
    if not result.matched:
        raise SystemExit(1)


def cmd_migrate(args):
    """Port a folder of legacy packs onto baseline packs."""
    if not os.path.isdir(args.legacy):
        print(f"Error: Directory not found: {args.legacy}", file=sys.stderr)
        raise SystemExit(1)
    if not os.path.isdir(args.baseline):
        print(f"Error: Baseline directory not found: {args.baseline}", file=sys.stderr)
        raise SystemExit(1)

    output = args.output or default_output_dir(args.legacy)
    reports = migrate_folder(args.legacy, args.baseline, output)
    totals = summarize(reports)
    print(f"Migrated {len(reports)} pack(s) into {output}")
    print(
        f"  legacy: {totals.get('legacy_entries', 0)}  baseline: {totals.get('baseline_entries', 0)}"
        f"  matched: {totals.get('matched', 0)}  review: {totals.get('needs_review', 0)}"
        f"  skipped files: {totals.get('skipped_files', 0)}"
    )


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="voiceover",
        description="Voice pack builder, resolver and legacy pack migration",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # build
    build_parser = subparsers.add_parser("build", help="Build a pack document from adapter lines")
    build_parser.add_argument("lines", help="Adapter lines JSON file")
    build_parser.add_argument("--character", help="Character name (overrides the file)")
    build_parser.add_argument("--language", help="Language code (overrides the file)")
    build_parser.add_argument("-o", "--output", help="Output pack document path")
    build_parser.add_argument("--start", type=int, default=1, help="First audio file number")
    build_parser.add_argument("--ext", default=DEFAULT_AUDIO_EXTENSION, choices=SUPPORTED_AUDIO_EXTENSIONS,
                              help="Audio file extension")
    build_parser.add_argument("--pack-id", help="VoicePackId (default <Character>.<lang>)")
    build_parser.add_argument("--pack-name", help="VoicePackName")
    build_parser.set_defaults(func=cmd_build)

    # update
    update_parser = subparsers.add_parser("update", help="Append new lines to an existing pack")
    update_parser.add_argument("pack", help="Pack document to update in place")
    update_parser.add_argument("lines", help="Adapter lines JSON file")
    update_parser.add_argument("--character", help="Character name (overrides the file)")
    update_parser.add_argument("--language", help="Language code (overrides the file)")
    update_parser.add_argument("--ext", default=DEFAULT_AUDIO_EXTENSION, choices=SUPPORTED_AUDIO_EXTENSIONS,
                               help="Audio file extension")
    update_parser.set_defaults(func=cmd_update)

    # inspect
    inspect_parser = subparsers.add_parser("inspect", help="Summarize packs and missing audio")
    inspect_parser.add_argument("path", help="Pack document or directory")
    inspect_parser.add_argument("--missing", action="store_true", help="List missing audio files")
    inspect_parser.add_argument("--strict", action="store_true", help="Exit 1 if any audio is missing")
    inspect_parser.add_argument("--characters", action="store_true",
                                help="List voiced characters with their languages and pack ids")
    inspect_parser.set_defaults(func=cmd_inspect)

    # resolve
    resolve_parser = subparsers.add_parser("resolve", help="Resolve one displayed line")
    resolve_parser.add_argument("packs", help="Directory of installed voice packs")
    resolve_parser.add_argument("--speaker", required=True, help="Speaking character")
    resolve_parser.add_argument("--text", required=True, help="Text as displayed")
    resolve_parser.add_argument("--language", default="en", help="Active language")
    resolve_parser.add_argument("--translation-key", help="Translation key, when known")
    resolve_parser.add_argument("--page", type=int, help="Page index, when known")
    resolve_parser.add_argument("--bubble", action="store_true", help="Text is a speech bubble")
    resolve_parser.add_argument("--pack-id", help="Select this pack for the speaker")
    resolve_parser.add_argument("--dictionary", help="Dictionary directory (default: packs dir)")
    resolve_parser.add_argument("--config", help="Config file (default: <packs>/config.json)")
    resolve_parser.set_defaults(func=cmd_resolve)

    # migrate
    migrate_parser = subparsers.add_parser("migrate", help="Port legacy packs onto baseline packs")
    migrate_parser.add_argument("legacy", help="Folder of legacy pack documents")
    migrate_parser.add_argument("--baseline", required=True, help="Folder of baseline pack documents")
    migrate_parser.add_argument("-o", "--output", help="Output folder (default <legacy>_output)")
    migrate_parser.set_defaults(func=cmd_migrate)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    args.func(args)
