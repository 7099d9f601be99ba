"""Loaded packs and the per-session service that owns every runtime cache."""

import logging

from voiceover.config import VoiceConfig
from voiceover.constants import FALLBACK_LANGUAGE
from voiceover.dictionary import MultilingualDictionary
from voiceover.languages import canon_lang
from voiceover.models import VoicePack
from voiceover.packfile import load_pack_dir
from voiceover.playback import VoicePlayer
from voiceover.resolver import BubbleTracker, DialogueObservation, Resolution, Resolver

logger = logging.getLogger(__name__)


class VoiceLibrary:
    """Every loaded voice pack, grouped by character."""

    def __init__(self, config: VoiceConfig | None = None):
        self.config = config or VoiceConfig()
        self._packs: dict[str, list[VoicePack]] = {}

    def add(self, pack: VoicePack) -> bool:
        """Register a pack; a second pack with the same id and language is ignored."""
        packs = self._packs.setdefault(pack.character.lower(), [])
        for existing in packs:
            if existing.pack_id.lower() == pack.pack_id.lower() and existing.language == pack.language:
                logger.debug("Duplicate pack %s [%s] ignored", pack.pack_id, pack.language)
                return False
        packs.append(pack)
        logger.debug(
            "Loaded %r (%s) for %s [%s], %d entries",
            pack.pack_name, pack.pack_id, pack.character, pack.language, len(pack.entries),
        )
        return True

    def load_dir(self, root: str) -> int:
        """Load every pack document under root. Returns how many packs were added."""
        return sum(1 for pack in load_pack_dir(root) if self.add(pack))

    def characters(self) -> list[str]:
        return sorted({p.character for packs in self._packs.values() for p in packs})

    def packs_for(self, character: str) -> list[VoicePack]:
        return list(self._packs.get(character.lower(), []))

    def select_pack(self, character: str, active_language: str) -> VoicePack | None:
        """The configured pack for a character, in the best available language.

        Prefers the active language, then the configured default, then
        English when fallback is enabled; otherwise any language of the
        selected pack, which sends resolution down the cross-language path.
        """
        selected_id = self.config.selected_pack_id(character)
        if not selected_id:
            return None
        packs = [p for p in self.packs_for(character) if p.pack_id.lower() == selected_id.lower()]
        if not packs:
            return None

        preferred = [canon_lang(active_language), canon_lang(self.config.default_language)]
        if self.config.fallback_to_default_if_missing:
            preferred.append(FALLBACK_LANGUAGE)
        for language in preferred:
            for pack in packs:
                if pack.language == language:
                    return pack
        return packs[0]


class VoiceSession:
    """Owns the library, dictionary, player and resolvers for one play session.

    begin() starts a session keyed by a save/session id; end() synchronously
    clears every cache and stops audio before a new session can begin.
    """

    def __init__(
        self,
        library: VoiceLibrary,
        dictionary: MultilingualDictionary,
        player: VoicePlayer | None = None,
        config: VoiceConfig | None = None,
    ):
        self.config = config or library.config
        self.library = library
        self.dictionary = dictionary
        self.player = player if player is not None else VoicePlayer(volume=self.config.master_volume)
        self.resolver = Resolver(library, dictionary, self.player, self.config)
        self.bubbles = BubbleTracker(self.resolver)
        self.session_id: str | None = None

    @property
    def active(self) -> bool:
        return self.session_id is not None

    def begin(self, session_id: str) -> None:
        if self.session_id is not None and self.session_id != session_id:
            self.end()
        self.session_id = session_id
        self.resolver.session_id = session_id
        logger.debug("Session %s started", session_id)

    def tick(self, observation: DialogueObservation | None) -> Resolution | None:
        if not self.active:
            return None
        return self.resolver.tick(observation)

    def tick_bubbles(self, bubbles: dict[str, str], language: str, capture=None) -> list[Resolution]:
        if not self.active:
            return []
        return self.bubbles.tick(bubbles, language, capture)

    def end(self) -> None:
        self.player.stop()
        self.resolver.reset()
        self.resolver.session_id = None
        self.bubbles.reset()
        self.dictionary.clear()
        logger.debug("Session %s ended", self.session_id)
        self.session_id = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.end()
        return False
