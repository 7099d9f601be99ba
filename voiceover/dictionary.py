"""Multilingual dictionary: per character, DisplayKey -> {(TranslationKey, PageIndex)} across languages.

Only consulted when the selected pack's language differs from the active
language. Dictionary documents are ordinary pack documents named
`{Character}_{anything}.json`; every language found in them can be merged.
"""

import glob
import json
import logging
import os
import threading

from voiceover.canonicalizer import canon_display
from voiceover.languages import canon_lang
from voiceover.packfile import PackFormatError, load_pack_file

logger = logging.getLogger(__name__)


class MultilingualDictionary:
    def __init__(self, dictionary_dir: str):
        self.dictionary_dir = dictionary_dir
        self.session_id: str | None = None
        self._lock = threading.Lock()
        # character -> display key -> {(tk, page)}
        self._candidates: dict[str, dict[str, set[tuple[str, int]]]] = {}
        # character -> lang -> tk -> page -> display key
        self._display_keys: dict[str, dict[str, dict[str, dict[int, str]]]] = {}
        self._loaded: dict[str, set[str]] = {}

    def _files_for(self, character: str) -> list[str]:
        pattern = os.path.join(glob.escape(self.dictionary_dir), f"{glob.escape(character)}_*.json")
        return sorted(glob.glob(pattern))

    def loaded_languages(self, character: str) -> set[str]:
        return set(self._loaded.get(character.lower(), ()))

    def ensure_loaded(self, character: str, languages) -> int:
        """Merge every dictionary pack of `character` in the given languages.

        Languages already merged are skipped. Returns the number of new
        (TranslationKey, PageIndex) pairs added.
        """
        if not character:
            return 0
        char = character.lower()
        with self._lock:
            wanted = {canon_lang(lang) for lang in languages if lang}
            loaded = self._loaded.setdefault(char, set())
            wanted -= loaded
            if not wanted:
                return 0

            candidates = self._candidates.setdefault(char, {})
            display_keys = self._display_keys.setdefault(char, {})
            added = 0

            for path in self._files_for(character):
                try:
                    packs = load_pack_file(path)
                except (json.JSONDecodeError, PackFormatError, OSError, ValueError) as e:
                    logger.warning("Failed loading dictionary file %s: %s", path, e)
                    continue

                for pack in packs:
                    if pack.language not in wanted:
                        continue
                    keys_by_tk = display_keys.setdefault(pack.language, {})
                    for entry in pack.entries:
                        tk = entry.translation_key
                        if not tk:
                            continue
                        page = entry.page_index
                        key = canon_display(entry.display_pattern or entry.dialogue_text)
                        if not key:
                            continue
                        keys_by_tk.setdefault(tk, {})[page] = key
                        pairs = candidates.setdefault(key, set())
                        if (tk, page) not in pairs:
                            pairs.add((tk, page))
                            added += 1

            loaded.update(wanted)
            logger.debug(
                "%s: +%d (TK, page) pairs; languages loaded %s; %d display keys",
                character, added, sorted(loaded), len(candidates),
            )
            return added

    def candidates_for_display_key(self, character: str, key: str) -> set[tuple[str, int]]:
        """Every (TranslationKey, PageIndex) whose text in some loaded language is `key`."""
        if not character or not key:
            return set()
        found = self._candidates.get(character.lower(), {}).get(canon_display(key))
        return set(found) if found else set()

    def pack_display_key_for(self, character: str, language: str, translation_key: str, page: int) -> str | None:
        """DisplayKey of exactly (TranslationKey, page) in the pack's language."""
        by_lang = self._display_keys.get(character.lower(), {})
        pages = by_lang.get(canon_lang(language), {}).get(translation_key) or {}
        return pages.get(page)

    def prime(self, session_id: str, character: str, pack_language: str, active_language: str) -> None:
        """Lazily load the two languages a cross-language lookup needs.

        A different session id than the one the cache was built for clears
        everything first, so nothing from an earlier session is consulted.
        """
        if session_id != self.session_id:
            self.clear()
            self.session_id = session_id
        self.ensure_loaded(character, (active_language, pack_language))

    def clear(self) -> None:
        with self._lock:
            self._candidates.clear()
            self._display_keys.clear()
            self._loaded.clear()
            self.session_id = None
