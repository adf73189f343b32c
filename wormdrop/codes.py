"""
Memorable transfer codes.

Format: {number}-{word}-{word}
Example: 42-banana-thunder

999 numbers x 500 x 499 ordered word pairs. That is small on purpose so a
human can read it over the phone; the slow key derivation in crypto.py is
what makes guessing expensive.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass

_CODE_RE = re.compile(r"([0-9]{1,3})-([a-z]+)-([a-z]+)")

CODE_MIN = 1
CODE_MAX = 999

# Common English nouns, easy to spell and say
WORDS: tuple[str, ...] = (
    "acid", "acorn", "acre", "agent", "album", "alert", "alien", "alley", "amber", "angel",
    "angle", "ankle", "anvil", "apple", "apron", "arena", "atlas", "axle", "badge", "bagel",
    "baker", "balm", "bamboo", "banjo", "barn", "baron", "basin", "batch", "beach", "beard",
    "beast", "bench", "berry", "birch", "blade", "blank", "blast", "blaze", "bloom", "bluff",
    "board", "booth", "boulder", "brain", "brass", "brave", "brick", "bridge", "brisk", "brook",
    "brush", "bubble", "bucket", "buddy", "buggy", "bunny", "cabin", "cable", "camel", "candy",
    "canoe", "cargo", "cedar", "chain", "chalk", "charm", "chase", "chess", "chill", "china",
    "choir", "chunk", "cider", "cigar", "circle", "civic", "claim", "clamp", "clash", "cliff",
    "climb", "clock", "cloud", "clown", "coach", "cobra", "cocoa", "comet", "coral", "couch",
    "crane", "crash", "crest", "crisp", "cross", "crowd", "crown", "crush", "curve", "cycle",
    "dagger", "dairy", "dance", "delta", "demon", "derby", "diary", "ditch", "dodge", "donut",
    "draft", "dragon", "drama", "dream", "drift", "drill", "drone", "drum", "dune", "dwarf",
    "eagle", "earth", "easel", "eclipse", "elder", "ember", "emoji", "epoch", "equip", "event",
    "exile", "fable", "faith", "falcon", "feast", "fence", "ferry", "fiber", "field", "flame",
    "flash", "fleet", "flint", "float", "flood", "flora", "flute", "focus", "forge", "forum",
    "fossil", "fox", "frame", "frost", "fruit", "fudge", "fungi", "fury", "galaxy", "gamma",
    "garden", "garlic", "gauge", "gavel", "ghost", "giant", "ginger", "glacier", "glaze", "globe",
    "glove", "glyph", "goat", "goblet", "grace", "grain", "grape", "gravel", "green", "grill",
    "grove", "guard", "guild", "guitar", "gecko", "habit", "hammer", "harbor", "haven", "hawk",
    "hazel", "heart", "hedge", "heron", "honey", "honor", "horse", "hotel", "humor", "hydra",
    "ivory", "jacket", "jade", "jaguar", "jewel", "joker", "judge", "juice", "jungle", "karma",
    "kayak", "kernel", "kiosk", "knight", "knob", "label", "lace", "lake", "lance", "lantern",
    "larch", "laser", "latch", "lava", "leaf", "ledge", "lemon", "lens", "lever", "light",
    "lilac", "linen", "lion", "llama", "lodge", "lotus", "lunar", "lunch", "mango", "manor",
    "maple", "marsh", "mason", "match", "maze", "medal", "melon", "mesa", "metal", "micro",
    "miner", "mint", "moat", "model", "molar", "money", "moose", "morph", "moth", "motor",
    "mount", "mouse", "mural", "music", "myth", "navel", "nerve", "nexus", "noble", "north",
    "notch", "novel", "nudge", "oasis", "ocean", "olive", "omega", "onion", "opera", "orbit",
    "organ", "otter", "outer", "oxide", "oyster", "panda", "panel", "paper", "park", "patch",
    "pearl", "pedal", "penny", "petal", "phase", "piano", "pilot", "pinch", "pixel", "pizza",
    "plank", "plant", "plaza", "plumb", "plume", "poach", "polar", "pond", "porch", "pouch",
    "pound", "prism", "probe", "prong", "prose", "proud", "prune", "pulse", "punch", "pupil",
    "quail", "quake", "query", "quest", "quill", "quota", "radar", "radio", "raven", "realm",
    "ridge", "rivet", "robin", "robot", "rogue", "roost", "rover", "ruby", "rugby", "rumor",
    "salad", "salon", "salsa", "sandy", "sauce", "sauna", "scale", "scout", "shark", "shelf",
    "shell", "shift", "shirt", "shock", "shore", "shrub", "sigma", "silk", "siren", "skull",
    "slate", "sleek", "slice", "slope", "smoke", "snail", "snake", "solar", "sonic", "space",
    "spark", "spear", "spice", "spike", "spine", "spoke", "spoon", "spray", "squid", "staff",
    "stage", "stake", "stamp", "steam", "steel", "steep", "steer", "stern", "stone", "stork",
    "storm", "stove", "straw", "sugar", "surge", "swamp", "swarm", "swift", "sword", "syrup",
    "table", "talon", "tango", "thorn", "tiara", "tidal", "tiger", "toast", "topaz", "torch",
    "tower", "trace", "trail", "train", "tramp", "trend", "tribe", "trick", "trout", "truck",
    "tulip", "tuba", "tundra", "turbo", "turf", "tweed", "ultra", "umber", "unity", "urban",
    "usher", "valve", "vault", "venom", "verse", "vigor", "villa", "viola", "viper", "vivid",
    "vocal", "vodka", "vortex", "wafer", "wagon", "waltz", "watch", "water", "whale", "wheat",
    "wheel", "whirl", "willow", "wings", "witch", "wizard", "world", "wound", "wrist", "yacht",
    "yield", "zebra", "zinc", "cozy", "haze", "dome", "pine", "reef", "sage", "tide",
    "vine", "wren", "yoke", "zone", "arch", "bolt", "cape", "claw", "cone", "cork",
    "dusk", "elm", "fang", "fern", "fist", "gale", "gem", "glen", "harp", "helm",
    "hive", "hull", "iris", "isle", "jolt", "kelp", "kiln", "knot", "lamp", "lark",
)

_WORD_SET = frozenset(WORDS)


@dataclass(frozen=True)
class TransferCode:
    """A parsed transfer code. ``str(code)`` is the canonical text form."""

    number: int
    word1: str
    word2: str

    def __str__(self) -> str:
        return f"{self.number}-{self.word1}-{self.word2}"


def generate_code() -> TransferCode:
    """Pick a fresh code from the OS CSPRNG.

    The two words are always distinct (rejection-resampled on collision).
    """
    number = secrets.randbelow(CODE_MAX) + CODE_MIN
    word1 = secrets.choice(WORDS)
    word2 = secrets.choice(WORDS)
    while word2 == word1:
        word2 = secrets.choice(WORDS)
    return TransferCode(number, word1, word2)


def parse_code(text: str) -> TransferCode | None:
    """Parse ``text`` into a TransferCode. Returns None if it is not one.

    Only the shape is checked here: number in [1, 999] without extra
    digits, two lowercase words that differ. Words outside WORDS are
    accepted so hand-picked codes still work; see uses_dictionary().
    """
    if not isinstance(text, str):
        return None
    m = _CODE_RE.fullmatch(text)
    if not m:
        return None
    number = int(m.group(1))
    if number < CODE_MIN or number > CODE_MAX:
        return None
    word1, word2 = m.group(2), m.group(3)
    if word1 == word2:
        return None
    return TransferCode(number, word1, word2)


def is_valid_code(text: str) -> bool:
    return parse_code(text) is not None


def uses_dictionary(code: TransferCode) -> bool:
    """True if both words come from WORDS (always the case for generated codes)."""
    return code.word1 in _WORD_SET and code.word2 in _WORD_SET
