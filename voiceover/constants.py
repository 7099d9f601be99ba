"""All magic numbers, fixed tables and configuration constants."""

VERSION = "0.3.0"

# Pack documents
FORMAT_CURRENT = "2.0.0"                     # format tag written by the builder and migration
FORMAT_LEGACY = "1.0.0"                      # assumed when a document carries no format tag
DEFAULT_AUDIO_EXTENSION = "ogg"              # numbered template audio files
SUPPORTED_AUDIO_EXTENSIONS = ("ogg", "wav")
ASSETS_DIR = "assets"                        # audio lives under assets/<lang>/<character>/
PACK_MANIFEST_NAME = "manifest.json"         # content-pack manifest, never a voice definition

# Script tokens
PAGE_BREAK_TOKEN = "#$e#"
LINE_BREAK_TOKEN = "#$b#"
WEEKLY_ROTATION_SEPARATOR = "||"
PLAYER_NAME_SIGIL = "@"
PLAYER_NAME_TAG = "{Farmer_Name}"
FARM_NAME_TAG = "{Farm_Name}"
BUBBLE_FARMER_PLACEHOLDER = "{0}"            # speech bubble format argument for the farmer name
BUBBLE_FARM_PLACEHOLDER = "{1}"              # speech bubble format argument for the farm name

# %token -> human readable tag
LEXICON_TAGS = {
    "adj": "{Adjective}",
    "noun": "{Noun}",
    "place": "{Place}",
    "name": "{Random_Name}",
    "spouse": "{Spouse_Name}",
    "farm": FARM_NAME_TAG,
    "favorite": "{Favorite_Thing}",
    "kid1": "{First_Child}",
    "kid2": "{Second_Child}",
    "pet": "{Pet_Name}",
    "firstnameletter": "{Farmer_Name_Half}",
    "band": "{Band_Name}",
    "book": "{Book_Name}",
    "season": "{Season}",
    "time": "{Time}",
}

# Portrait sigil code -> tag used in actor text
PORTRAIT_TAGS = {
    "0": "Neutral",
    "1": "Happy",
    "h": "Happy",
    "2": "Sad",
    "s": "Sad",
    "3": "Unique",
    "u": "Unique",
    "4": "Love",
    "l": "Love",
    "5": "Angry",
    "a": "Angry",
}

# Languages
DEFAULT_LANGUAGE = "en"
FALLBACK_LANGUAGE = "en"                     # hard fallback when FallbackToDefaultIfMissing is on
KNOWN_LANGUAGES = (
    "en", "es-es", "zh-cn", "ja-jp", "pt-br", "fr-fr",
    "ko-kr", "it-it", "de-de", "hu-hu", "ru-ru", "tr-tr",
)
LANGUAGE_ALIASES = {
    "english": "en", "en-us": "en", "en-gb": "en", "en_gb": "en", "en-au": "en",
    "spanish": "es-es", "es": "es-es",
    "chinese": "zh-cn", "zh": "zh-cn", "zh_hans": "zh-cn",
    "japanese": "ja-jp", "ja": "ja-jp",
    "portuguese": "pt-br", "pt": "pt-br",
    "french": "fr-fr", "fr": "fr-fr",
    "korean": "ko-kr", "ko": "ko-kr",
    "italian": "it-it", "it": "it-it",
    "german": "de-de", "de": "de-de",
    "hungarian": "hu-hu", "hu": "hu-hu",
    "russian": "ru-ru", "ru": "ru-ru",
    "turkish": "tr-tr", "tr": "tr-tr",
}

# Runtime resolver
TEXT_STABILIZE_TICKS = 8                     # ticks of unchanged text before resolving
DIALOGUE_CLOSE_DEBOUNCE_TICKS = 2            # consecutive absent ticks before returning to idle
HOUSEKEEPING_INTERVAL_TICKS = 2              # dispose sweep runs on every Nth tick
BUBBLE_STABILIZE_TICKS = 4                   # ticks of unchanged bubble text before resolving
MASTER_VOLUME = 1.0

# Migration
PORTED_PREFIX = "Ported_"
CONFLICT_SUFFIX = "-conflict-"
REPORT_DIR = "Port_report"
OUTPUT_SUFFIX = "_output"
ERR_EMPTY_PATTERN = "Empty/unsanitized DisplayPattern"
ERR_NO_MATCH = "No DisplayPattern match in baseline"
ERR_ALL_CLAIMED = "All baseline matches already claimed"
ERR_RECHECK_FAILED = "Baseline DisplayPattern differs on re-check"
ERR_AUDIO_NOT_FOUND = "Audio source not found"
ERR_AUDIO_COPY_FAILED = "Audio copy failed"
ERR_AUDIO_REUSED = "Audio source already ported for a different line"
ERR_NO_BASELINE = "No baseline file for this character/language"

# Installed packs
CONFIG_FILE = "config.json"

# Base-game cast; any other voiced character comes from a content mod
VANILLA_CHARACTERS = (
    "Abigail", "Alex", "Caroline", "Clint", "Demetrius", "Dwarf", "Elliott", "Emily", "Evelyn", "George",
    "Gil", "Gus", "Haley", "Harvey", "Jas", "Jodi", "Kent", "Krobus", "Leah", "Leo", "LeoMainland",
    "Lewis", "Linus", "Marnie", "Maru", "Mister Qi", "Pam", "Penny", "Pierre", "Robin",
    "Sam", "Sandy", "Sebastian", "Shane", "Vincent", "Willy", "Wizard", "Birdie", "Gunther",
    "Marlon", "Morris", "Henchman", "Bouncer", "Grandpa", "Governor", "Professor Snail",
)
