"""Map dynamic words in live text back to script sigils before matching."""

import re
from dataclasses import dataclass, field

from voiceover.canonicalizer import lexicon_tag, punctuation_canon, sanitize_display
from voiceover.constants import (
    BUBBLE_FARM_PLACEHOLDER,
    BUBBLE_FARMER_PLACEHOLDER,
    FARM_NAME_TAG,
    PLAYER_NAME_SIGIL,
    PLAYER_NAME_TAG,
)
from voiceover.models import Capture


@dataclass
class PlayerContext:
    """Player/world state the host substitutes into dialogue."""

    farmer_name: str = ""
    farm_name: str = ""
    favorite_thing: str = ""
    pet_name: str = ""
    spouse_name: str = ""
    children: list[str] = field(default_factory=list)
    lexicon_choices: dict[str, str] = field(default_factory=dict)  # "adj" -> word chosen for this page
    other_words: list[str] = field(default_factory=list)  # substituted words with no script sigil


def build_capture(context: PlayerContext | None) -> Capture:
    cap = Capture()
    if context is None:
        return cap
    cap.add_token(context.farmer_name, PLAYER_NAME_SIGIL)
    cap.add_token(context.farm_name, "%farm")
    cap.add_token(context.favorite_thing, "%favorite")
    cap.add_token(context.pet_name, "%pet")
    cap.add_token(context.spouse_name, "%spouse")
    for sigil, child in zip(("%kid1", "%kid2"), context.children):
        cap.add_token(child, sigil)
    for token, word in context.lexicon_choices.items():
        cap.add_token(word, f"%{token.lstrip('%')}")
    cap.add(*context.other_words)
    return cap


def _word_re(word: str) -> re.Pattern:
    return re.compile(rf"(?<!\w){re.escape(word)}(?!\w)", re.IGNORECASE)


def _longest_first(words) -> list[str]:
    return sorted(words, key=lambda w: (-len(w), w))


def restore_sigils(text: str, capture: Capture) -> str:
    """Replace each captured word with the sigil it was substituted for."""
    for word in _longest_first(capture.tokens):
        text = _word_re(word).sub(capture.tokens[word], text)
    return text


def strip_words(text: str, words) -> str:
    """Delete captured words (whole words, case-insensitive)."""
    for word in _longest_first(words):
        text = _word_re(word).sub("", text)
    return text


def prepare_live_text(text: str, capture: Capture | None = None) -> str:
    """Live dialogue text -> DisplayPattern-style key.

    Words the capture knows a sigil for are mapped back to it, any other
    captured word is dropped, then the display sanitizer runs.
    """
    if not text or not text.strip():
        return ""
    if capture is not None:
        text = restore_sigils(text, capture)
        text = strip_words(text, capture.words - set(capture.tokens))
    return sanitize_display(text)


def prepare_bubble_text(text: str, capture: Capture | None = None) -> str:
    """Live speech-bubble text -> DisplayPattern-style key.

    The farmer and farm name go back to their {0}/{1} placeholders, other
    sigil words become their lexicon tag, words without a tag are stripped,
    then punctuation is canonicalized.
    """
    if not text or not text.strip():
        return ""
    if capture is not None:
        placeholders = {PLAYER_NAME_SIGIL: BUBBLE_FARMER_PLACEHOLDER, "%farm": BUBBLE_FARM_PLACEHOLDER}
        named = {}
        for word, sigil in capture.tokens.items():
            tag = placeholders.get(sigil) or lexicon_tag(sigil.lstrip("%"))
            if tag:
                named[word] = tag
        for word in _longest_first(named):
            text = _word_re(word).sub(named[word], text)
        text = strip_words(text, capture.words - set(named))
    text = text.replace(BUBBLE_FARMER_PLACEHOLDER, PLAYER_NAME_TAG).replace(BUBBLE_FARM_PLACEHOLDER, FARM_NAME_TAG)
    return punctuation_canon(text)
