"""Tests for packfile module."""

import json
import logging

import pytest

from voiceover.models import Gender
from voiceover.packfile import (
    PackFormatError,
    entry_to_record,
    load_pack_dir,
    load_pack_file,
    parse_pack_document,
    write_pack_file,
)


def _legacy_doc():
    return {
        "Format": "1.0.0",
        "VoicePacks": [{
            "VoicePackId": "Abigail.Old",
            "VoicePackName": "Abigail (old)",
            "Character": "Abigail",
            "Language": "en",
            "Entries": [
                {"DialogueFrom": "Mon", "DialogueText": "Hi, @.", "AudioPath": "assets\\en\\Abigail\\hi.ogg"},
                {"DialogueText": "No audio here.", "AudioPath": ""},
            ],
        }],
    }


def test_written_pack_reloads_with_same_indices(abigail_pack, tmp_path):
    """Writing then loading a pack preserves both indices."""
    path = write_pack_file(str(tmp_path / "Abigail_en.json"), [abigail_pack])
    loaded = load_pack_file(path)
    assert len(loaded) == 1
    pack = loaded[0]
    assert pack.format_major == 2
    assert pack.entries_by_display_pattern == abigail_pack.entries_by_display_pattern
    assert pack.entries_by_translation_key_page == abigail_pack.entries_by_translation_key_page
    assert pack.entries[3].gender is Gender.MALE
    assert pack.base_path == str(tmp_path)


def test_written_document_shape(abigail_pack, tmp_path):
    """Current-format records carry DisplayPattern and omit null fields."""
    path = write_pack_file(str(tmp_path / "out.json"), [abigail_pack])
    with open(path, encoding="utf-8") as f:
        doc = json.load(f)
    assert doc["Format"] == "2.0.0"
    record = doc["VoicePacks"][0]["Entries"][0]
    assert record["DisplayPattern"] == "Hi, {Farmer_Name}."
    assert record["TranslationKey"] == "Characters/Dialogue/Abigail:Mon"
    assert record["PageIndex"] == 0
    assert "GenderVariant" not in record
    assert "DialogueTextPortedFromV1" not in record


def test_legacy_document_uses_dialogue_text():
    """Format 1 entries key on DialogueText; entries without audio are dropped."""
    packs = parse_pack_document(_legacy_doc())
    pack = packs[0]
    assert pack.format_major == 1
    assert len(pack.entries) == 1
    assert pack.entries[0].display_pattern == "Hi, @."
    assert pack.entries[0].audio_path == "assets/en/Abigail/hi.ogg"


def test_translation_key_implies_current_format():
    """A document without Format but with TranslationKeys is read as format 2."""
    doc = _legacy_doc()
    del doc["Format"]
    doc["VoicePacks"][0]["Entries"][0]["TranslationKey"] = "Characters/Dialogue/Abigail:Mon"
    doc["VoicePacks"][0]["Entries"][0]["DisplayPattern"] = "Hi, {Farmer_Name}."
    pack = parse_pack_document(doc)[0]
    assert pack.format_major == 2
    assert pack.entries_by_display_pattern == {"Hi, {Farmer_Name}.": "assets/en/Abigail/hi.ogg"}


def test_missing_voice_packs_raises():
    """A document without a VoicePacks list is structurally invalid."""
    with pytest.raises(PackFormatError):
        parse_pack_document({"Format": "2.0.0"})


def test_incomplete_definition_skipped(caplog):
    """Definitions missing required fields are skipped with a warning."""
    doc = _legacy_doc()
    doc["VoicePacks"].append({"VoicePackId": "x", "Character": "Sam", "Entries": []})
    with caplog.at_level(logging.WARNING):
        packs = parse_pack_document(doc)
    assert [p.pack_id for p in packs] == ["Abigail.Old"]
    assert "missing" in caplog.text


def test_language_canonicalized_on_load():
    """Pack languages are stored in canonical form."""
    doc = _legacy_doc()
    doc["VoicePacks"][0]["Language"] = "FR"
    assert parse_pack_document(doc)[0].language == "fr-fr"


def test_load_pack_dir_skips_bad_files(tmp_path, write_json, caplog):
    """Malformed files and manifests are skipped; good files still load."""
    write_json(tmp_path / "good" / "Abigail_en.json", _legacy_doc())
    write_json(tmp_path / "good" / "manifest.json", {"Name": "Some mod"})
    (tmp_path / "broken.json").write_text("{not json")
    write_json(tmp_path / "nopacks.json", {"Format": "2.0.0"})
    with caplog.at_level(logging.WARNING):
        packs = load_pack_dir(str(tmp_path))
    assert [p.pack_id for p in packs] == ["Abigail.Old"]
    assert "broken.json" in caplog.text
    assert "nopacks.json" in caplog.text


def test_legacy_record_shape(abigail_pack):
    """Format 1 records carry only DialogueFrom, DialogueText and AudioPath."""
    record = entry_to_record(abigail_pack.entries[0], 1)
    assert set(record) <= {"DialogueFrom", "DialogueText", "AudioPath"}
    assert record["AudioPath"] == "assets/en/Abigail/1.ogg"
