"""Runtime resolver: live dialogue text -> audio file of the selected voice pack.

The host calls Resolver.tick() once per frame with what is on screen.
Text has to stay unchanged for a few ticks before it is resolved (so a
line that types out character by character plays once), and the dialogue
box has to be gone for a few consecutive ticks before the resolver
returns to idle (so the one-tick blank between pages is ignored).

Resolution order for the speaker's selected pack:
  1. same language: DisplayPattern lookup, then a punctuation-canonical
     retry, then the (TranslationKey, page) index when the host knows them;
  2. different language: the multilingual dictionary maps the displayed
     key to (TranslationKey, page) candidates, each is mapped back to the
     pack's own text and audio; the first file that exists wins;
  3. speech bubbles: captured words mapped back to their tags, then
     punctuation canonicalization and a DisplayPattern lookup.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum

from voiceover.canonicalizer import canon_display, punctuation_canon
from voiceover.capture import prepare_bubble_text, prepare_live_text
from voiceover.config import VoiceConfig
from voiceover.constants import BUBBLE_STABILIZE_TICKS
from voiceover.languages import canon_lang, languages_differ
from voiceover.models import Capture, VoicePack

logger = logging.getLogger(__name__)


class ResolverState(Enum):
    IDLE = "idle"
    TEXT_VISIBLE = "text_visible"
    STABILIZED = "stabilized"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"


class ResolutionOutcome(Enum):
    MATCHED = "matched"
    NO_PACK_SELECTED = "no_pack_selected"
    KEY_NOT_FOUND = "key_not_found"
    AUDIO_MISSING = "audio_missing"
    CROSS_LANGUAGE_MISS = "cross_language_miss"


@dataclass(frozen=True)
class DialogueObservation:
    speaker: str
    text: str
    language: str
    translation_key: str | None = None
    page: int | None = None
    is_bubble: bool = False
    capture: Capture | None = None


@dataclass
class Resolution:
    outcome: ResolutionOutcome
    speaker: str = ""
    display_key: str = ""
    audio_path: str | None = None
    pack: VoicePack | None = None
    detail: str = ""

    @property
    def matched(self) -> bool:
        return self.outcome is ResolutionOutcome.MATCHED


def lookup_display(pack: VoicePack, key: str) -> str | None:
    """DisplayPattern lookup with a punctuation-canonical retry on a miss."""
    index = pack.entries_by_display_pattern
    exact = canon_display(key)
    if exact in index:
        return index[exact]
    alt = punctuation_canon(key)
    if not alt:
        return None
    if alt in index:
        return index[alt]
    for pattern, path in index.items():
        if punctuation_canon(pattern) == alt:
            return path
    return None


def full_audio_path(pack: VoicePack, rel_path: str) -> str:
    return os.path.normpath(os.path.join(pack.base_path, *rel_path.split("/")))


class Resolver:
    """Per-dialogue state machine plus the resolution chain.

    `library` selects a pack with select_pack(character, active_language);
    `dictionary` is a MultilingualDictionary; `player` (optional) is the
    VoicePlayer that MATCHED results are played through.
    """

    def __init__(self, library, dictionary, player=None, config: VoiceConfig | None = None):
        self.library = library
        self.dictionary = dictionary
        self.player = player
        self.config = config or VoiceConfig()
        self.session_id: str | None = None
        self.last_resolution: Resolution | None = None
        self._tick_count = 0
        self.reset()

    def reset(self) -> None:
        self.state = ResolverState.IDLE
        self._last_text: str | None = None
        self._last_speaker: str | None = None
        self._stable_ticks = 0
        self._absent_ticks = 0

    # -- tick loop ----------------------------------------------------------

    def tick(self, observation: DialogueObservation | None) -> Resolution | None:
        """Advance one host tick. Returns a Resolution on the tick a line resolves."""
        self._tick_count += 1
        if self.player is not None and self._tick_count % self.config.housekeeping_interval == 0:
            self.player.sweep()

        if observation is None:
            if self.state is not ResolverState.IDLE:
                self._absent_ticks += 1
                if self._absent_ticks >= self.config.dialogue_close_debounce_ticks:
                    logger.debug("Dialogue closed")
                    self.reset()
            return None

        self._absent_ticks = 0
        if not observation.text or not observation.text.strip():
            return None

        if observation.text != self._last_text or observation.speaker != self._last_speaker:
            self._last_text = observation.text
            self._last_speaker = observation.speaker
            self._stable_ticks = 0
            self.state = ResolverState.TEXT_VISIBLE
            return None

        if self.state in (ResolverState.RESOLVED, ResolverState.UNRESOLVED):
            return None

        self._stable_ticks += 1
        if self._stable_ticks < self.config.text_stabilize_ticks:
            return None

        self.state = ResolverState.STABILIZED
        result = self.resolve_observation(observation)
        if result.matched and self.player is not None:
            self.player.play(result.audio_path)
        self.state = ResolverState.RESOLVED if result.matched else ResolverState.UNRESOLVED
        return result

    # -- resolution ---------------------------------------------------------

    def resolve_observation(self, observation: DialogueObservation) -> Resolution:
        return self.resolve(
            observation.speaker,
            observation.text,
            observation.language,
            translation_key=observation.translation_key,
            page=observation.page,
            is_bubble=observation.is_bubble,
            capture=observation.capture,
        )

    def resolve(
        self,
        speaker: str,
        text: str,
        language: str,
        translation_key: str | None = None,
        page: int | None = None,
        is_bubble: bool = False,
        capture: Capture | None = None,
    ) -> Resolution:
        """Resolve one displayed line without playing it."""
        language = canon_lang(language)
        pack = self.library.select_pack(speaker, language) if speaker else None
        if pack is None:
            result = Resolution(ResolutionOutcome.NO_PACK_SELECTED, speaker=speaker or "")
        elif is_bubble:
            key = prepare_bubble_text(text, capture)
            result = self._resolve_same_language(speaker, pack, key)
        else:
            key = prepare_live_text(text, capture)
            if languages_differ(pack.language, language):
                result = self._resolve_cross_language(speaker, pack, key, language)
            else:
                result = self._resolve_same_language(speaker, pack, key, translation_key, page)
        self._log(result)
        self.last_resolution = result
        return result

    def _resolve_same_language(
        self,
        speaker: str,
        pack: VoicePack,
        key: str,
        translation_key: str | None = None,
        page: int | None = None,
    ) -> Resolution:
        rel = lookup_display(pack, key) if key else None
        if rel is None and translation_key:
            rel = pack.entries_by_translation_key_page.get((translation_key, page or 0))
        if rel is None:
            return Resolution(ResolutionOutcome.KEY_NOT_FOUND, speaker, key, pack=pack)

        path = full_audio_path(pack, rel)
        if not os.path.exists(path):
            return Resolution(ResolutionOutcome.AUDIO_MISSING, speaker, key, path, pack)
        return Resolution(ResolutionOutcome.MATCHED, speaker, key, path, pack)

    def _resolve_cross_language(self, speaker: str, pack: VoicePack, key: str, language: str) -> Resolution:
        if not key:
            return Resolution(ResolutionOutcome.KEY_NOT_FOUND, speaker, key, pack=pack)

        self.dictionary.prime(self.session_id, speaker, pack.language, language)
        candidates = sorted(self.dictionary.candidates_for_display_key(speaker, key))
        if not candidates:
            return Resolution(
                ResolutionOutcome.KEY_NOT_FOUND, speaker, key, pack=pack,
                detail=f"no dictionary entry in {language}",
            )

        missing: list[str] = []
        for tk, page in candidates:
            # audio only from the selected pack's own indices
            rel_paths = []
            pack_key = self.dictionary.pack_display_key_for(speaker, pack.language, tk, page)
            if pack_key:
                rel_paths.append(lookup_display(pack, pack_key))
            rel_paths.append(pack.entries_by_translation_key_page.get((tk, page)))

            for rel in dict.fromkeys(p for p in rel_paths if p):
                path = full_audio_path(pack, rel)
                if os.path.exists(path):
                    return Resolution(
                        ResolutionOutcome.MATCHED, speaker, key, path, pack,
                        detail=f"via {tk} page {page}",
                    )
                missing.append(path)

        if missing:
            return Resolution(ResolutionOutcome.AUDIO_MISSING, speaker, key, missing[0], pack)
        return Resolution(
            ResolutionOutcome.CROSS_LANGUAGE_MISS, speaker, key, pack=pack,
            detail=f"{len(candidates)} candidate(s), none mapped to {pack.language}",
        )

    def _log(self, result: Resolution) -> None:
        o = ResolutionOutcome
        # developer mode surfaces every resolution, not just the failures
        verbose = logging.INFO if self.config.developer_mode else logging.DEBUG
        if result.outcome is o.MATCHED:
            logger.log(verbose, "[%s] %r -> %s %s", result.speaker, result.display_key, result.audio_path, result.detail)
        elif result.outcome is o.NO_PACK_SELECTED:
            logger.log(verbose, "[%s] no voice pack selected", result.speaker)
        elif result.outcome is o.KEY_NOT_FOUND:
            logger.info("[%s] display key not found: %r %s", result.speaker, result.display_key, result.detail)
        elif result.outcome is o.AUDIO_MISSING:
            logger.warning("[%s] matched %r but audio file is missing: %s",
                           result.speaker, result.display_key, result.audio_path)
        else:
            logger.info("[%s] cross-language miss for %r: %s", result.speaker, result.display_key, result.detail)


class BubbleTracker:
    """Debounces speech bubbles per speaker; each distinct bubble resolves once."""

    def __init__(self, resolver: Resolver, stabilize_ticks: int = BUBBLE_STABILIZE_TICKS):
        self.resolver = resolver
        self.stabilize_ticks = stabilize_ticks
        self._states: dict[str, dict] = {}

    def reset(self) -> None:
        self._states.clear()

    def tick(self, bubbles: dict[str, str], language: str, capture: Capture | None = None) -> list[Resolution]:
        """`bubbles` maps speaker -> bubble text currently shown above their head."""
        for speaker in list(self._states):
            if not bubbles.get(speaker):
                del self._states[speaker]

        # the dialogue path owns playback while a dialogue box is up
        if self.resolver.state is not ResolverState.IDLE:
            return []

        results = []
        for speaker, text in bubbles.items():
            if not text or not text.strip():
                continue
            state = self._states.get(speaker)
            if state is None or state["text"] != text:
                self._states[speaker] = {"text": text, "stable": 0, "played": False}
                continue
            state["stable"] += 1
            if state["played"] or state["stable"] < self.stabilize_ticks:
                continue

            state["played"] = True
            result = self.resolver.resolve(speaker, text, language, is_bubble=True, capture=capture)
            if result.matched and self.resolver.player is not None:
                self.resolver.player.play(result.audio_path)
            results.append(result)
        return results
