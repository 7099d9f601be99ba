"""Tests for resolver module."""

import logging
import os

import pytest

from voiceover.builder import PackBuilder, build_pack_from_lines
from voiceover.capture import PlayerContext, build_capture
from voiceover.config import VoiceConfig
from voiceover.dictionary import MultilingualDictionary
from voiceover.models import RawLine
from voiceover.packfile import write_pack_file
from voiceover.resolver import (
    BubbleTracker,
    DialogueObservation,
    ResolutionOutcome,
    Resolver,
    ResolverState,
    lookup_display,
)
from voiceover.session import VoiceLibrary
from voiceover.sources import SourceCategory, SourceKey, adapter_line

MON = "Characters/Dialogue/Abigail:Mon"
TUE = "Characters/Dialogue/Abigail:Tue"
WED = "Characters/Dialogue/Abigail:Wed"
SAT = "Characters/Dialogue/Abigail:Sat"


class FakePlayer:
    """Records play/sweep calls instead of starting audio."""

    def __init__(self):
        self.played = []
        self.sweeps = 0

    def play(self, path):
        self.played.append(path)
        return True

    def sweep(self):
        self.sweeps += 1
        return False

    def stop(self):
        pass


def _abigail_lines(language, texts):
    return [
        adapter_line(SourceKey(SourceCategory.CHARACTER_DIALOGUE, "Abigail", tk.split(":")[1]), language, text)
        for tk, text in texts
    ]


@pytest.fixture
def packs_dir(tmp_path, touch_audio):
    """Abigail's English pack with audio for every file except 5_female.ogg."""
    root = tmp_path / "packs"
    lines = _abigail_lines("en", [
        (MON, "Hi, @.#$e#Want to play?$h"),
        (TUE, "I love the rain..."),
        (WED, "${Hey, man^Hey, girl}!"),
    ])
    lines.append(adapter_line(
        SourceKey(SourceCategory.SPEECH_BUBBLE, "Abigail", "SeedShop_Abigail_1"), "en", "Hi {0}!",
    ))
    pack = build_pack_from_lines("Abigail", "en", lines)
    write_pack_file(str(root / "Abigail_en.json"), [pack])
    touch_audio(root, "assets/en/Abigail/1.ogg", "assets/en/Abigail/2.ogg", "assets/en/Abigail/3.ogg",
                "assets/en/Abigail/4_male.ogg", "assets/en/Abigail/6.ogg")
    return root


@pytest.fixture
def dictionary_dir(tmp_path):
    """English and French dictionary documents for Abigail."""
    root = tmp_path / "dictionary"
    for language, texts in (
        ("en", [(MON, "Hi, @.#$e#Want to play?$h"), (TUE, "I love the rain...")]),
        ("fr", [(MON, "Salut, @.#$e#Tu veux jouer ?$h"), (TUE, "J'adore la pluie..."), (SAT, "Samedi.")]),
    ):
        pack = build_pack_from_lines("Abigail", language, _abigail_lines(language, texts))
        write_pack_file(str(root / f"Abigail_{pack.language}.json"), [pack])
    return root


def _config(**kwargs):
    return VoiceConfig(selected_voice_packs={"Abigail": "Abigail.en"}, **kwargs)


def _resolver(packs_dir, dictionary_dir, player=None, config=None):
    config = config or _config()
    library = VoiceLibrary(config)
    library.load_dir(str(packs_dir))
    return Resolver(library, MultilingualDictionary(str(dictionary_dir)), player, config)


def _capture():
    return build_capture(PlayerContext(farmer_name="Alex", farm_name="Sunny"))


# --- Same language ---

def test_same_language_match(packs_dir, dictionary_dir):
    """Live text with the player's name resolves to the numbered file."""
    r = _resolver(packs_dir, dictionary_dir)
    result = r.resolve("Abigail", "Hi, Alex.", "en", capture=_capture())
    assert result.outcome is ResolutionOutcome.MATCHED
    assert result.audio_path == os.path.normpath(str(packs_dir / "assets" / "en" / "Abigail" / "1.ogg"))
    assert r.last_resolution is result


def test_portrait_free_live_text_matches(packs_dir, dictionary_dir):
    """The host shows text without portrait commands; it still matches."""
    r = _resolver(packs_dir, dictionary_dir)
    assert r.resolve("Abigail", "Want to play?", "en").audio_path.endswith("2.ogg")


def test_punctuation_retry(packs_dir, dictionary_dir):
    """A rendered ellipsis character still finds the '...' pattern."""
    r = _resolver(packs_dir, dictionary_dir)
    result = r.resolve("Abigail", "I love the rain…", "en")
    assert result.matched
    assert result.audio_path.endswith("3.ogg")


def test_translation_key_fallback(packs_dir, dictionary_dir):
    """A known (TranslationKey, page) resolves even when the text differs."""
    r = _resolver(packs_dir, dictionary_dir)
    result = r.resolve("Abigail", "Something else entirely", "en", translation_key=MON, page=1)
    assert result.audio_path.endswith("2.ogg")


def test_no_pack_selected(packs_dir, dictionary_dir):
    """Without a configured pack id nothing is resolved."""
    r = _resolver(packs_dir, dictionary_dir, config=VoiceConfig())
    assert r.resolve("Abigail", "Hi, Alex.", "en").outcome is ResolutionOutcome.NO_PACK_SELECTED


def test_key_not_found(packs_dir, dictionary_dir):
    """Unknown text is a key miss."""
    r = _resolver(packs_dir, dictionary_dir)
    assert r.resolve("Abigail", "Never said this.", "en").outcome is ResolutionOutcome.KEY_NOT_FOUND


def test_audio_missing(packs_dir, dictionary_dir):
    """A matched entry whose file is absent is reported as missing audio."""
    r = _resolver(packs_dir, dictionary_dir)
    result = r.resolve("Abigail", "Hey, girl!", "en")
    assert result.outcome is ResolutionOutcome.AUDIO_MISSING
    assert result.audio_path.endswith("5_female.ogg")


def test_developer_mode_logs_matches_at_info(packs_dir, dictionary_dir, caplog):
    """Matches are logged at INFO only in developer mode."""
    quiet = _resolver(packs_dir, dictionary_dir)
    with caplog.at_level(logging.INFO, logger="voiceover.resolver"):
        quiet.resolve("Abigail", "Want to play?", "en")
    assert "2.ogg" not in caplog.text

    loud = _resolver(packs_dir, dictionary_dir, config=_config(developer_mode=True))
    with caplog.at_level(logging.INFO, logger="voiceover.resolver"):
        loud.resolve("Abigail", "Want to play?", "en")
    assert "2.ogg" in caplog.text


# --- Cross language ---

def test_cross_language_match(packs_dir, dictionary_dir):
    """French text on screen plays the English pack's audio for the same key and page."""
    r = _resolver(packs_dir, dictionary_dir)
    result = r.resolve("Abigail", "Tu veux jouer ?", "fr")
    assert result.outcome is ResolutionOutcome.MATCHED
    assert result.audio_path.endswith("2.ogg")
    assert MON in result.detail


def test_cross_language_miss(packs_dir, dictionary_dir):
    """A key the pack's language never had is a cross-language miss."""
    r = _resolver(packs_dir, dictionary_dir)
    assert r.resolve("Abigail", "Samedi.", "fr").outcome is ResolutionOutcome.CROSS_LANGUAGE_MISS


def test_cross_language_never_borrows_dictionary_audio(tmp_path, touch_audio):
    """A key the selected pack lacks is a miss even if a dictionary file numbers it onto an existing clip."""
    root = tmp_path / "packs"
    pack = build_pack_from_lines("Abigail", "fr", _abigail_lines("fr", [(MON, "Bonjour !"), (TUE, "Merci !")]))
    write_pack_file(str(root / "Abigail_fr.json"), [pack])
    touch_audio(root, "assets/fr-fr/Abigail/1.ogg", "assets/fr-fr/Abigail/2.ogg")

    dictionary = tmp_path / "dictionary"
    for language, texts in (
        ("en", [(MON, "Hello!"), (TUE, "Thanks!"), (WED, "See you!")]),
        ("fr", [(MON, "Bonjour !"), (WED, "À plus !")]),
    ):
        doc = build_pack_from_lines("Abigail", language, _abigail_lines(language, texts))
        write_pack_file(str(dictionary / f"Abigail_{doc.language}.json"), [doc])

    config = VoiceConfig(selected_voice_packs={"Abigail": "Abigail.fr-fr"})
    r = _resolver(root, dictionary, config=config)
    assert r.resolve("Abigail", "Thanks!", "en").audio_path.endswith("2.ogg")
    result = r.resolve("Abigail", "See you!", "en")
    assert result.outcome is ResolutionOutcome.CROSS_LANGUAGE_MISS
    assert result.audio_path is None


def test_foreign_pack_without_dictionary_does_not_match(tmp_path, touch_audio):
    """A French-only pack with English active and no dictionary resolves nothing."""
    root = tmp_path / "packs"
    builder = PackBuilder("Haley", "fr")
    builder.add_raw_line(RawLine("x", "fr", "Bonjour."), "Characters/Dialogue/Haley:Mon")
    write_pack_file(str(root / "Haley_fr.json"), [builder.build()])
    touch_audio(root, "assets/fr-fr/Haley/1.ogg")
    (tmp_path / "empty").mkdir()

    config = VoiceConfig(selected_voice_packs={"Haley": "Haley.fr-fr"})
    r = _resolver(root, tmp_path / "empty", config=config)
    result = r.resolve("Haley", "Hello.", "en")
    assert not result.matched
    assert result.outcome is ResolutionOutcome.KEY_NOT_FOUND


# --- Tick loop ---

def test_tick_waits_for_stable_text_and_plays_once(packs_dir, dictionary_dir):
    """Text must be unchanged for the stabilize window, then plays exactly once."""
    player = FakePlayer()
    r = _resolver(packs_dir, dictionary_dir, player, _config(text_stabilize_ticks=3))
    obs = DialogueObservation("Abigail", "Want to play?", "en")

    results = [r.tick(obs) for _ in range(4)]
    assert results[:3] == [None, None, None]
    assert results[3].matched
    assert r.state is ResolverState.RESOLVED
    assert len(player.played) == 1

    for _ in range(5):
        assert r.tick(obs) is None
    assert len(player.played) == 1


def test_typing_text_never_resolves(packs_dir, dictionary_dir):
    """Text that changes every tick keeps resetting the window."""
    player = FakePlayer()
    r = _resolver(packs_dir, dictionary_dir, player, _config(text_stabilize_ticks=2))
    text = "Want to play?"
    for i in range(1, len(text) + 1):
        assert r.tick(DialogueObservation("Abigail", text[:i], "en")) is None
    assert player.played == []


def test_single_absent_tick_is_debounced(packs_dir, dictionary_dir):
    """One tick without a dialogue box does not re-arm the same line."""
    player = FakePlayer()
    r = _resolver(packs_dir, dictionary_dir, player,
                  _config(text_stabilize_ticks=1, dialogue_close_debounce_ticks=2))
    obs = DialogueObservation("Abigail", "Want to play?", "en")
    r.tick(obs)
    r.tick(obs)
    assert len(player.played) == 1

    r.tick(None)
    r.tick(obs)
    r.tick(obs)
    assert len(player.played) == 1

    r.tick(None)
    r.tick(None)
    assert r.state is ResolverState.IDLE
    r.tick(obs)
    r.tick(obs)
    assert len(player.played) == 2


def test_unresolved_line_is_not_retried(packs_dir, dictionary_dir):
    """A miss is logged once and the line stays unresolved."""
    r = _resolver(packs_dir, dictionary_dir, FakePlayer(), _config(text_stabilize_ticks=1))
    obs = DialogueObservation("Abigail", "Never said this.", "en")
    r.tick(obs)
    assert r.tick(obs).outcome is ResolutionOutcome.KEY_NOT_FOUND
    assert r.state is ResolverState.UNRESOLVED
    assert r.tick(obs) is None


def test_housekeeping_sweeps_on_interval(packs_dir, dictionary_dir):
    """The player is swept every Nth tick."""
    player = FakePlayer()
    r = _resolver(packs_dir, dictionary_dir, player, _config(housekeeping_interval=3))
    for _ in range(9):
        r.tick(None)
    assert player.sweeps == 3


# --- Lookup helpers ---

def test_lookup_display_scans_punctuation_forms():
    """A pack key written with spaces before punctuation still matches."""
    builder = PackBuilder("Abigail", "fr")
    builder.add_raw_line(RawLine("x", "fr", "Tu veux jouer ?"), MON)
    pack = builder.build()
    assert lookup_display(pack, "Tu veux jouer?") == "assets/fr-fr/Abigail/1.ogg"
    assert lookup_display(pack, "Autre chose") is None


# --- Speech bubbles ---

def test_bubble_resolves_once_after_stabilizing(packs_dir, dictionary_dir):
    """A bubble naming the player plays once its text has been stable."""
    player = FakePlayer()
    r = _resolver(packs_dir, dictionary_dir, player)
    tracker = BubbleTracker(r, stabilize_ticks=2)
    bubbles = {"Abigail": "Hi Alex!"}

    assert tracker.tick(bubbles, "en", _capture()) == []
    assert tracker.tick(bubbles, "en", _capture()) == []
    results = tracker.tick(bubbles, "en", _capture())
    assert len(results) == 1
    assert results[0].matched
    assert results[0].audio_path.endswith("6.ogg")
    assert tracker.tick(bubbles, "en", _capture()) == []
    assert len(player.played) == 1


def test_bubbles_wait_while_dialogue_is_open(packs_dir, dictionary_dir):
    """Bubbles are not resolved while a dialogue box owns playback."""
    r = _resolver(packs_dir, dictionary_dir, FakePlayer())
    r.tick(DialogueObservation("Abigail", "Want to play?", "en"))
    assert r.state is ResolverState.TEXT_VISIBLE
    tracker = BubbleTracker(r, stabilize_ticks=1)
    for _ in range(3):
        assert tracker.tick({"Abigail": "Hi Alex!"}, "en", _capture()) == []


def test_bubble_with_pet_name_round_trips_through_builder(tmp_path, touch_audio):
    """A built bubble naming the farmer and pet matches the same bubble shown live."""
    root = tmp_path / "packs"
    bubble = adapter_line(
        SourceKey(SourceCategory.SPEECH_BUBBLE, "Abigail", "SeedShop_Abigail_2"), "en", "Hi {0}, how is %pet?",
    )
    pack = build_pack_from_lines("Abigail", "en", [bubble])
    assert [e.display_pattern for e in pack.entries] == ["Hi {Farmer_Name}, how is {Pet_Name}?"]
    write_pack_file(str(root / "Abigail_en.json"), [pack])
    touch_audio(root, "assets/en/Abigail/1.ogg")

    r = _resolver(root, tmp_path / "dictionary")
    capture = build_capture(PlayerContext(farmer_name="Alex", pet_name="Rex"))
    result = r.resolve("Abigail", "Hi Alex, how is Rex?", "en", is_bubble=True, capture=capture)
    assert result.outcome is ResolutionOutcome.MATCHED
    assert result.audio_path.endswith("1.ogg")
