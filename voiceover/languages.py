"""Language code canonicalization."""

from voiceover.constants import DEFAULT_LANGUAGE, KNOWN_LANGUAGES, LANGUAGE_ALIASES


def canon_lang(code: str | None) -> str:
    """Map a host or pack language code to its canonical form.

    "EN-us" -> "en", "fr" -> "fr-fr", "pt_BR" -> "pt-br". Unknown codes are
    lowercased with "_" turned into "-"; empty input means the default language.
    """
    if not code or not code.strip():
        return DEFAULT_LANGUAGE
    norm = code.strip().lower().replace("_", "-")
    if norm in KNOWN_LANGUAGES:
        return norm
    if norm in LANGUAGE_ALIASES:
        return LANGUAGE_ALIASES[norm]
    # "fr-ca" -> "fr-fr" when only the base language is known
    base = norm.split("-")[0]
    if base in KNOWN_LANGUAGES:
        return base
    return LANGUAGE_ALIASES.get(base, norm)


def base_lang(code: str | None) -> str:
    return canon_lang(code).split("-")[0]


def languages_differ(a: str | None, b: str | None) -> bool:
    """True when two codes name different base languages."""
    return base_lang(a) != base_lang(b)
