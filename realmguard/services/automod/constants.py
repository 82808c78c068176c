"""
Automod Constants
=================

Thresholds, budgets and pattern lists used by the detectors.
"""

from typing import Dict, FrozenSet, Tuple


# =============================================================================
# Verdict Policy
# =============================================================================

AUTO_BAN_MIN_CRITICAL = 1
AUTO_BAN_MIN_HIGH = 2


# =============================================================================
# Platforms
# =============================================================================

DEVICE_NAMES: Dict[int, str] = {
    0: "Unknown",
    1: "Android",
    2: "iOS",
    3: "macOS",
    4: "FireOS",
    5: "GearVR",
    6: "Hololens",
    7: "Windows",
    8: "Windows",
    9: "Dedicated",
    10: "tvOS",
    11: "PlayStation",
    12: "Nintendo",
    13: "Xbox",
    14: "Windows Phone",
}

VALID_PLATFORM_IDS: FrozenSet[int] = frozenset(DEVICE_NAMES)
UNKNOWN_PLATFORM = 0
DEDICATED_PLATFORM = 9

CONSOLE_PLATFORMS: FrozenSet[int] = frozenset({10, 11, 12, 13})
ONLINE_ID_PLATFORMS: FrozenSet[int] = frozenset({11, 12, 13})
VR_PLATFORMS: FrozenSet[int] = frozenset({5, 6})
MOBILE_PLATFORMS: FrozenSet[int] = frozenset({1, 2, 4})

# Input modes reported by the client
INPUT_UNKNOWN = 0
INPUT_MOUSE = 1
INPUT_TOUCH = 2
INPUT_CONTROLLER = 3

INPUT_MODE_NAMES: Dict[int, str] = {
    INPUT_UNKNOWN: "Unknown",
    INPUT_MOUSE: "Keyboard/Mouse",
    INPUT_TOUCH: "Touch",
    INPUT_CONTROLLER: "Controller",
}

# platform -> (expected input modes, max gui scale)
DEVICE_PROFILES: Dict[int, Tuple[FrozenSet[int], int]] = {
    0: (frozenset({INPUT_MOUSE, INPUT_TOUCH}), 4),
    1: (frozenset({INPUT_MOUSE, INPUT_TOUCH, INPUT_CONTROLLER}), 3),
    2: (frozenset({INPUT_MOUSE, INPUT_TOUCH, INPUT_CONTROLLER}), 2),
    3: (frozenset({INPUT_MOUSE, INPUT_TOUCH, INPUT_CONTROLLER}), 4),
    4: (frozenset({INPUT_MOUSE, INPUT_TOUCH}), 2),
    5: (frozenset({INPUT_CONTROLLER}), 2),
    6: (frozenset({INPUT_CONTROLLER}), 2),
    7: (frozenset({INPUT_MOUSE, INPUT_TOUCH, INPUT_CONTROLLER}), 4),
    8: (frozenset({INPUT_MOUSE, INPUT_TOUCH, INPUT_CONTROLLER}), 4),
    9: (frozenset({INPUT_MOUSE}), 1),
    10: (frozenset({INPUT_CONTROLLER}), 4),
    11: (frozenset({INPUT_CONTROLLER}), 4),
    12: (frozenset({INPUT_CONTROLLER}), 3),
    13: (frozenset({INPUT_CONTROLLER}), 4),
    14: (frozenset({INPUT_MOUSE}), 2),
}

# Substrings used by hacked clients to identify themselves
HOSTILE_CLIENT_MARKERS: Tuple[str, ...] = (
    "toolbox", "horion", "zephyr", "packet", "prax", "onix",
    "flarial", "latite", "lunar", "badlion", "pvplounge",
    "client", "hack", "cheat", "exploit", "crash", "external",
    "injector", "dll", "mod", "modified", "custom", "bypass",
    "spoof", "fake", "emulator", "emulated", "virtual",
    "null", "undefined", "unknown", "test", "debug",
    "wurst", "aristois", "impact", "meteor", "sigma", "vape",
)

# Named cheat clients only; third-party names usually carry the gamertag
HOSTILE_CLIENT_NAMES: Tuple[str, ...] = (
    "toolbox", "horion", "zephyr", "prax", "flarial", "latite",
    "wurst", "aristois", "meteor", "sigma", "vape",
)

SUSPICIOUS_LANGUAGE_MARKERS: Tuple[str, ...] = (
    "xx_xx", "en_zz", "test", "debug", "null", "undefined", "hacker", "exploit",
)

NULL_DEVICE_ID = "00000000-0000-0000-0000-000000000000"
MIN_DEVICE_MODEL_LENGTH = 2
MAX_DEVICE_MODEL_LENGTH = 256
GUI_SCALE_MIN = -1
GUI_SCALE_MAX = 10


# =============================================================================
# Skins
# =============================================================================

MIN_SKIN_SIDE = 16
STANDARD_SKIN_SIZES: FrozenSet[Tuple[int, int]] = frozenset({
    (64, 32), (64, 64), (128, 128), (256, 256), (512, 512),
})
NONSTANDARD_SKIN_MIN = 32
NONSTANDARD_SKIN_MAX = 1024
MAX_SKIN_ASPECT_RATIO = 4.0
SKIN_LENGTH_TOLERANCE = 100

LARGE_SKIN_BYTES = 10000
LARGE_SKIN_STRIDE = 16
SMALL_SKIN_STRIDE = 4
TRANSPARENT_ALPHA = 10
BLACK_CHANNEL = 5

INVISIBLE_RATIO = 0.90
MOSTLY_TRANSPARENT_RATIO = 0.75
BLACK_RATIO = 0.95
SINGLE_COLOR_RATIO = 0.95
SINGLE_COLOR_MIN_SAMPLES = 100

BANNED_GEOMETRY: Tuple[str, ...] = (
    "tiny", "small", "invis", "invisible", "exploit",
    "4d", "fourd", "four_d", "4_d", "toolbox", "horion", "zephyr", "packet",
    "hitbox", "hit_box", "crasher", "crash", "negative", "void",
    "empty", "armor_stand", "armorstand", "mini", "micro", "nano", "pixel",
    "flat", "paper", "2d", "plane",
)

GEOMETRY_PARSE_MIN_LENGTH = 100
GEOMETRY_MALFORMED_MIN_LENGTH = 50
MAX_BONES = 100
TINY_CUBE_SIDE = 0.5
MAX_TINY_CUBES = 10
NEGATIVE_ORIGIN_LIMIT = -100
EXTREME_ORIGIN_LIMIT = 1000
MIN_BONE_SCALE = 0.1
MIN_CAPE_SIDE = 8
MAX_PERSONA_PIECES = 50
HOSTILE_ANIMATION_MARKERS: Tuple[str, ...] = ("crash", "exploit", "lag")


# =============================================================================
# Chat & Commands
# =============================================================================

ZALGO_THRESHOLD = 20
INVISIBLE_CHAR_THRESHOLD = 10
VISIBLE_RATIO_MIN = 0.3
VISIBLE_RATIO_MIN_LENGTH = 10

RAPID_FIRE_GAP = 0.5
RAPID_FIRE_MIN_GAPS = 3
CHAR_SPAM_MIN_LENGTH = 10
CHAR_SPAM_RATIO = 0.7
WALL_OF_TEXT_LENGTH = 200

REPETITIVE_COMMAND_RATIO = 0.7

AD_ALLOWED_DOMAINS: Tuple[str, ...] = (
    "minecraft.net", "xbox.com", "microsoft.com", "mojang.com",
)


# =============================================================================
# Packets
# =============================================================================

WORLD_BORDER = 30_000_000
MIN_Y = -1000
MAX_Y = 500
MAX_SPEED = 100.0
MAX_YAW = 360.0
MAX_PITCH = 90.0
MIN_SLOT = -1
MAX_SLOT = 500
MAX_PACKET_ITEM_COUNT = 64 * 100
MAX_PACKET_STRING = 10000

ANOMALY_WINDOW = 60.0
MAX_ANOMALIES = 10

PACKET_RATE_WINDOW = 1.0
PACKET_FLOOD_MULTIPLIER = 2
PACKET_CRITICAL_MULTIPLIER = 5
SUSTAINED_WINDOWS = 3

PACKET_RATE_LIMITS: Dict[str, int] = {
    "move_player": 30,
    "player_action": 20,
    "inventory_transaction": 15,
    "animate": 10,
    "interact": 10,
    "block_pick_request": 5,
    "command_request": 5,
    "text": 10,
    "mob_equipment": 10,
}
DEFAULT_PACKET_RATE_LIMIT = 50


# =============================================================================
# Inventory
# =============================================================================

ILLEGAL_ITEMS: FrozenSet[str] = frozenset({
    "command_block", "chain_command_block", "repeating_command_block",
    "command_block_minecart", "barrier", "structure_block", "structure_void",
    "jigsaw", "light_block", "debug_stick", "spawn_egg", "bedrock",
    "end_portal_frame", "end_portal", "nether_portal", "fire", "soul_fire",
    "water", "lava", "air", "mob_spawner", "petrified_oak_slab", "knowledge_book",
})
ILLEGAL_ITEM_PREFIXES: Tuple[str, ...] = ("infested_",)

# Obtainable in survival but a common carrier for crafted metadata
WATCHED_ITEMS: FrozenSet[str] = frozenset({
    "bundle", "suspicious_stew", "written_book", "firework_rocket", "enchanted_book",
})

DEFAULT_MAX_STACK = 64
MAX_ENCHANT_LEVEL = 255
MAX_NBT_BYTES = 50000

ENCHANT_CAPS: Dict[str, int] = {
    "sharpness": 5, "smite": 5, "bane_of_arthropods": 5, "knockback": 2,
    "fire_aspect": 2, "looting": 3, "sweeping": 3, "efficiency": 5,
    "silk_touch": 1, "unbreaking": 3, "fortune": 3, "power": 5, "punch": 2,
    "flame": 1, "infinity": 1, "luck_of_the_sea": 3, "lure": 3, "loyalty": 3,
    "impaling": 5, "riptide": 3, "channeling": 1, "multishot": 1,
    "quick_charge": 3, "piercing": 4, "mending": 1, "vanishing_curse": 1,
    "binding_curse": 1, "protection": 4, "fire_protection": 4,
    "feather_falling": 4, "blast_protection": 4, "projectile_protection": 4,
    "respiration": 3, "aqua_affinity": 1, "thorns": 3, "depth_strider": 3,
    "frost_walker": 2, "soul_speed": 3, "swift_sneak": 3,
}


# =============================================================================
# Profiles
# =============================================================================

NEW_ACCOUNT_GAMERSCORE = 100
DAYS_PER_TENURE_LEVEL = 365


# =============================================================================
# Dispatch
# =============================================================================

CHECK_SKIN = "appearance"
CHECK_DEVICE = "device"
CHECK_PROFILE = "profile"
CHECK_UNICODE = "unicode"
CHECK_CHAT_FLOOD = "chat_flood"
CHECK_COMMAND_SPAM = "command_spam"
CHECK_ADVERTISING = "advertising"
CHECK_INVALID_PACKET = "invalid_packet"
CHECK_PACKET_RATE = "packet_rate"
CHECK_INVENTORY = "inventory"

# Packet type -> checks run on every packet of that type
PACKET_CHECKS: Dict[str, Tuple[str, ...]] = {
    "move_player": (CHECK_INVALID_PACKET, CHECK_PACKET_RATE),
    "player_action": (CHECK_INVALID_PACKET, CHECK_PACKET_RATE),
    "animate": (CHECK_PACKET_RATE,),
    "interact": (CHECK_INVALID_PACKET, CHECK_PACKET_RATE),
    "block_pick_request": (CHECK_INVALID_PACKET, CHECK_PACKET_RATE),
    "mob_equipment": (CHECK_INVALID_PACKET, CHECK_PACKET_RATE),
    "player_input": (CHECK_INVALID_PACKET, CHECK_PACKET_RATE),
    "inventory_transaction": (CHECK_PACKET_RATE, CHECK_INVENTORY),
    "command_request": (CHECK_PACKET_RATE, CHECK_COMMAND_SPAM),
    "text": (CHECK_PACKET_RATE,),
}
