"""Canonicalize raw dialogue script lines into page segments with display keys."""

import re

from voiceover.constants import (
    LEXICON_TAGS,
    LINE_BREAK_TOKEN,
    PAGE_BREAK_TOKEN,
    PLAYER_NAME_SIGIL,
    PLAYER_NAME_TAG,
    PORTRAIT_TAGS,
    WEEKLY_ROTATION_SEPARATOR,
)
from voiceover.models import Gender, Segment

_LEXICON_ALTERNATION = "|".join(sorted(LEXICON_TAGS, key=len, reverse=True))

# Branch constructs (matched against a whole page)
_RANDOM_CHOICE_RE = re.compile(r"^\s*#?\$c\s*[0-9.]+\s*#(.+?)#(.+)$", re.DOTALL | re.IGNORECASE)
_CONDITIONAL_RE = re.compile(r"^\s*#?\$(?:d|query|p)\b[^#]*#(.+?)\|(.+)$", re.DOTALL | re.IGNORECASE)
_BRACED_GENDER_RE = re.compile(r"\$\{([^{}]+)\}")

# Sanitization chain
_ONCE_ONLY_LINE_RE = re.compile(r"^\s*\$1\s+\S+#(?P<first>.*?)(?:#\$e#.*)?$", re.DOTALL)
_LEADING_GATE_RE = re.compile(r"^\s*(?:[A-Za-z_]+|\d+)#(?!\$)")
_INLINE_FLAG_RE = re.compile(r"#\$1\s+[A-Za-z0-9_]+#")
_STRAY_WEIGHT_RE = re.compile(r"^\s*(?:\d*\.\d+\s*)+")
_LEADING_NARRATOR_RE = re.compile(rf"^\s*%+(?!(?:{_LEXICON_ALTERNATION})\b)", re.IGNORECASE)
_QUESTION_RE = re.compile(r"#?\$q\s+[^#]*#(?P<q>[^#]*)", re.DOTALL | re.IGNORECASE)
_RESPONSE_RE = re.compile(r"#?\$r\s+[^#]*#[^#]*#?", re.DOTALL | re.IGNORECASE)
_CHANCE_PREFIX_RE = re.compile(r"#?\$c\s*[0-9.]+\s*#", re.IGNORECASE)
_BARE_SEPARATOR_RE = re.compile(r"\s*#(?!\$)\s*")
_QUICK_RESPONSE_RE = re.compile(r"\$y\s+(['\"])(?P<p>.*?)\1", re.DOTALL | re.IGNORECASE)
_OTHER_COMMAND_RE = re.compile(r"#\$(?:action|k|t|v)\b[^#]*", re.DOTALL | re.IGNORECASE)
_ITEM_GRANT_RE = re.compile(r"\[[^\]]+\]")
_TRAILING_DOLLAR_RE = re.compile(r"\$(?=[\s,.!?)]|$)")
_LEXICON_TOKEN_RE = re.compile(r"%(?P<tok>[A-Za-z0-9_]+)%?")
_PORTRAIT_RE = re.compile(r"#?\$(?:h|s|u|l|a|\d+)\b")
_RESIDUAL_COMMAND_RE = re.compile(r"#?\$[A-Za-z]\w*")
_RESIDUAL_HASH_RE = re.compile(r"\s*#\s*")

_HORIZONTAL_WS_RE = re.compile(r"[ \t]+")
_NEWLINE_PADDING_RE = re.compile(r"[ \t]*\n[ \t]*")
_ANY_WS_RE = re.compile(r"\s+")

# Punctuation canonicalization
_SMART_QUOTES = str.maketrans({"‘": "'", "’": "'", "“": '"', "”": '"'})
_LONG_ELLIPSIS_RE = re.compile(r"\.{4,}")
_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+([!?.,;:])")

# Passes needed for the chain to reach a fixed point on pathological input
_MAX_SANITIZE_PASSES = 4


def lexicon_tag(token: str) -> str | None:
    """Readable tag for a %token, or None when the token is not in the lexicon."""
    return LEXICON_TAGS.get(token.lower())


def _quick_response(match: re.Match) -> str:
    bits = match.group("p").split("_")
    pairs = [f"{bits[k]}: {bits[k + 1]}" for k in range(0, len(bits) - 1, 2)]
    return " | ".join(pairs)


def _lexicon(match: re.Match) -> str:
    return lexicon_tag(match.group("tok")) or match.group(0)


def _portrait_tag(match: re.Match) -> str:
    code = match.group(0).lstrip("#")[1:]
    tag = PORTRAIT_TAGS.get(code)
    if tag is None:
        tag = f"Custom:{code}" if code.isdigit() else "Unknown"
    return f" {{Portrait:{tag}}}"


def _collapse_whitespace(s: str) -> str:
    s = _HORIZONTAL_WS_RE.sub(" ", s)
    s = _NEWLINE_PADDING_RE.sub("\n", s)
    return s.strip()


def _strip_commands(s: str) -> str:
    """Shared part of the rewrite chain, ending before portrait handling."""
    once = _ONCE_ONLY_LINE_RE.match(s)
    if once:
        s = once.group("first")

    s = _LEADING_GATE_RE.sub("", s)
    s = _INLINE_FLAG_RE.sub(" ", s)
    s = _STRAY_WEIGHT_RE.sub("", s)
    s = _LEADING_NARRATOR_RE.sub("", s)

    # keep only the question, drop the answer blocks
    s = _QUESTION_RE.sub(lambda m: " " + m.group("q"), s)
    s = _RESPONSE_RE.sub("", s)

    s = _CHANCE_PREFIX_RE.sub("", s)
    s = _OTHER_COMMAND_RE.sub("", s)
    s = _BARE_SEPARATOR_RE.sub(" ", s)
    s = _QUICK_RESPONSE_RE.sub(_quick_response, s)
    s = _ITEM_GRANT_RE.sub("", s)
    s = _TRAILING_DOLLAR_RE.sub("", s)

    s = s.replace(PLAYER_NAME_SIGIL, PLAYER_NAME_TAG)
    s = _LEXICON_TOKEN_RE.sub(_lexicon, s)
    return _collapse_whitespace(s)


def _fixed_point(step, s: str) -> str:
    for _ in range(_MAX_SANITIZE_PASSES):
        nxt = step(s)
        if nxt == s:
            break
        s = nxt
    return s


def _display_pass(s: str) -> str:
    s = _strip_commands(s)
    s = _PORTRAIT_RE.sub("", s)
    s = _RESIDUAL_COMMAND_RE.sub(" ", s)
    s = _RESIDUAL_HASH_RE.sub(" ", s)
    return _collapse_whitespace(s)


def _actor_pass(s: str) -> str:
    s = _strip_commands(s)
    s = _PORTRAIT_RE.sub(_portrait_tag, s)
    s = _RESIDUAL_COMMAND_RE.sub(" ", s)
    s = _RESIDUAL_HASH_RE.sub(" ", s)
    return _collapse_whitespace(s)


def sanitize_display(text: str | None) -> str:
    """Build the DisplayPattern for one page body.

    Portrait/mood sigils are deleted; every other rewrite is shared with
    sanitize_actor(). Sanitizing an already sanitized string is a no-op.
    """
    if not text or not text.strip():
        return ""
    return _fixed_point(_display_pass, text)


def sanitize_actor(text: str | None) -> str:
    """Readable actor script: like the display text, with portrait tags kept."""
    if not text or not text.strip():
        return ""
    return _fixed_point(_actor_pass, text)


def canon_display(s: str | None) -> str:
    """Whitespace-canonical form used as an index key."""
    if not s or not s.strip():
        return ""
    return _ANY_WS_RE.sub(" ", s).strip()


def punctuation_canon(s: str | None) -> str:
    """Light punctuation canonicalization for retrying a missed lookup."""
    if not s or not s.strip():
        return ""
    s = s.translate(_SMART_QUOTES).replace("…", "...")
    s = _LONG_ELLIPSIS_RE.sub("...", s)
    s = _SPACE_BEFORE_PUNCT_RE.sub(r"\1", s)
    return _ANY_WS_RE.sub(" ", s).strip()


def _split_caret_gender(text: str) -> tuple[str, str] | None:
    """Bare "male^female" split; a line break after the caret ends the split span."""
    if "${" in text or text.count("^") != 1:
        return None
    caret = text.index("^")
    line_end = text.find("\n", caret + 1)
    if line_end >= 0:
        tail = text[line_end:]
        male = text[:caret] + tail
        female = text[caret + 1:line_end] + tail
        if not text[caret + 1:line_end].strip():
            return None
    else:
        male = text[:caret]
        female = text[caret + 1:]
        if not female.strip():
            return None
    if not text[:caret].strip():
        return None
    return male, female


def _split_braced_gender(text: str) -> list[tuple[str, Gender]] | None:
    """Expand ${male^female(^neutral)} tokens, one variant per alternative."""
    tokens = list(_BRACED_GENDER_RE.finditer(text))
    if not tokens:
        return None

    alternatives = []
    for match in tokens:
        inner = match.group(1)
        sep = "¦" if "¦" in inner else "^"
        alternatives.append(inner.split(sep))
    width = max(len(parts) for parts in alternatives)
    if width < 2:
        return None

    genders = (Gender.MALE, Gender.FEMALE, Gender.NONBINARY)
    variants = []
    for i, gender in enumerate(genders[:width]):
        pieces = iter(parts[min(i, len(parts) - 1)] for parts in alternatives)
        body = _BRACED_GENDER_RE.sub(lambda _m: next(pieces), text)
        if body.strip():
            variants.append((body, gender))
    return variants


def _expand_branches(text: str) -> list[tuple[str, Gender]]:
    """Expand one page into (body, gender) variants; first matching construct wins."""
    match = _RANDOM_CHOICE_RE.match(text) or _CONDITIONAL_RE.match(text)
    if match:
        variants = []
        for alternative in match.groups():
            if alternative.strip():
                variants.extend(_expand_branches(alternative.strip()))
        return variants

    caret = _split_caret_gender(text)
    if caret:
        return [(caret[0], Gender.MALE), (caret[1], Gender.FEMALE)]

    braced = _split_braced_gender(text)
    if braced:
        return braced

    return [(text, Gender.NONE)]


def page_bodies(raw_text: str, split_pages: bool = True, split_line_breaks: bool = False) -> list[str]:
    """Apply weekly-rotation truncation and page splitting; returns non-empty page bodies."""
    raw = raw_text or ""
    rotation = raw.find(WEEKLY_ROTATION_SEPARATOR)
    if rotation >= 0:
        raw = raw[:rotation]

    chunks = raw.split(PAGE_BREAK_TOKEN) if split_pages else [raw.replace(PAGE_BREAK_TOKEN, "\n")]

    pages = []
    for chunk in chunks:
        if split_line_breaks:
            pages.extend(chunk.split(LINE_BREAK_TOKEN))
        else:
            pages.append(chunk.replace(LINE_BREAK_TOKEN, "\n"))
    return [p.strip() for p in pages if p.strip()]


def canonicalize(raw_text: str, split_pages: bool = True, split_line_breaks: bool = False) -> list[Segment]:
    """Turn one raw script line into ordered segments.

    Every emitted segment, branch siblings included, gets the next page
    index, so indices are unique and strictly increasing within the line.
    """
    segments: list[Segment] = []
    for page in page_bodies(raw_text, split_pages, split_line_breaks):
        for body, gender in _expand_branches(page):
            if not body.strip():
                continue
            segments.append(Segment(
                page_index=len(segments),
                actor_text=sanitize_actor(body),
                display_text=sanitize_display(body),
                gender=gender,
            ))
    return segments
