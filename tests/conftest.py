"""Shared fixtures for voiceover tests."""

import json
import os

import pytest
from pydub import AudioSegment

from voiceover.builder import PackBuilder
from voiceover.models import RawLine


@pytest.fixture
def tiny_wav(tmp_path):
    """Generate a 100ms silent WAV for testing."""
    path = tmp_path / "test.wav"
    silence = AudioSegment.silent(duration=100)
    silence.export(str(path), format="wav")
    return path


@pytest.fixture
def write_json():
    """Write a JSON document, creating parent folders."""
    def _write(path, data):
        os.makedirs(os.path.dirname(str(path)), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        return str(path)
    return _write


@pytest.fixture
def touch_audio():
    """Create placeholder audio files for relative paths under a root."""
    def _touch(root, *rel_paths, content=b"RIFF"):
        for rel in rel_paths:
            path = os.path.join(str(root), *rel.split("/"))
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as f:
                f.write(content)
    return _touch


@pytest.fixture
def abigail_pack():
    """A small English pack built from a few raw lines."""
    builder = PackBuilder("Abigail", "en")
    builder.add_raw_line(RawLine("CharacterDialogue/Abigail/Mon", "en", "Hi, @.#$e#Want to play?$h"),
                         "Characters/Dialogue/Abigail:Mon")
    builder.add_raw_line(RawLine("CharacterDialogue/Abigail/Tue", "en", "I love the rain..."),
                         "Characters/Dialogue/Abigail:Tue")
    builder.add_raw_line(RawLine("CharacterDialogue/Abigail/Wed", "en", "${Hey, man^Hey, girl}!"),
                         "Characters/Dialogue/Abigail:Wed")
    return builder.build()
