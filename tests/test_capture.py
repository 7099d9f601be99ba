"""Tests for capture module."""

from voiceover.capture import (
    PlayerContext,
    build_capture,
    prepare_bubble_text,
    prepare_live_text,
    restore_sigils,
)
from voiceover.models import Capture


def _capture():
    return build_capture(PlayerContext(
        farmer_name="Alex",
        farm_name="Sunny",
        pet_name="Rex",
        lexicon_choices={"adj": "lovely"},
    ))


def test_build_capture_tokens():
    """Context words map to the sigils the host substituted them for."""
    cap = _capture()
    assert cap.tokens == {"Alex": "@", "Sunny": "%farm", "Rex": "%pet", "lovely": "%adj"}
    assert cap.words == {"Alex", "Sunny", "Rex", "lovely"}


def test_build_capture_without_context():
    """No context means nothing to restore or strip."""
    assert build_capture(None) == Capture()


def test_restore_sigils_whole_words_only():
    """Only whole-word occurrences are restored, case-insensitively."""
    assert restore_sigils("alex met Alexandra", _capture()) == "@ met Alexandra"


def test_live_text_matches_display_pattern():
    """Substituted names turn back into the tags stored in the pack."""
    text = prepare_live_text("Hi, Alex. How is Sunny Farm?", _capture())
    assert text == "Hi, {Farmer_Name}. How is {Farm_Name} Farm?"


def test_live_text_restores_lexicon_choice():
    """A random lexicon word chosen for this page maps back to its tag."""
    assert prepare_live_text("What a lovely day.", _capture()) == "What a {Adjective} day."


def test_live_text_strips_untokened_words():
    """Captured words without a sigil are removed before matching."""
    cap = Capture()
    cap.add("Bob")
    assert prepare_live_text("Hi Bob!", cap) == "Hi !"


def test_live_text_without_capture_just_sanitizes():
    """Without a capture the text is only sanitized."""
    assert prepare_live_text("Want to play?$h") == "Want to play?"
    assert prepare_live_text("   ") == ""


def test_bubble_text_reinserts_placeholders():
    """Farmer and farm names go back through {0}/{1} to the pack tags."""
    text = prepare_bubble_text("Hi Alex, welcome to Sunny!", _capture())
    assert text == "Hi {Farmer_Name}, welcome to {Farm_Name}!"


def test_bubble_text_maps_sigil_words_to_tags():
    """Pet names and lexicon words in a bubble become the tags stored in the pack."""
    text = prepare_bubble_text("Good boy, Rex …", _capture())
    assert text == "Good boy, {Pet_Name}..."
    assert prepare_bubble_text("A lovely day!", _capture()) == "A {Adjective} day!"


def test_bubble_text_strips_untagged_words():
    """Captured words with no sigil are dropped and punctuation is canonicalized."""
    cap = build_capture(PlayerContext(farmer_name="Alex", other_words=["Bob"]))
    assert prepare_bubble_text("Hi Alex, Bob says hi !", cap) == "Hi {Farmer_Name}, says hi!"


def test_other_words_are_stripped_without_a_tag():
    """Substituted words with no script sigil are captured for stripping only."""
    cap = build_capture(PlayerContext(farmer_name="Alex", other_words=["Bob", " "]))
    assert cap.words == {"Alex", "Bob"}
    assert "Bob" not in cap.tokens
    assert prepare_live_text("Hi Bob, I'm Alex.", cap) == "Hi , I'm {Farmer_Name}."
