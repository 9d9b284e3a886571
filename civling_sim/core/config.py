"""All tunable constants for the civling simulation.

Every magic number in the codebase must reference this file (or the
rule tree in ``core/rules.py`` for values that can be overridden at runtime).
"""

# =============================================================================
# WORLD
# =============================================================================
WORLD_WIDTH: int = 36
WORLD_HEIGHT: int = 24
SHELTER_SITE: tuple[int, int] = (18, 12)
INITIAL_CIVLINGS: int = 4
MAX_CIVLINGS: int = 6
BASE_NAMES: list[str] = ["Ari", "Bex", "Cori", "Dax", "Ena", "Fio"]

STARTING_FOOD: int = 12
STARTING_WOOD: int = 6
STARTING_FIBER: int = 0

# Base stockpile capacity before storage or shelters add to it
BASE_WOOD_CAPACITY: int = 12
WOOD_CAPACITY_PER_SHELTER_SLOT: int = 2

# =============================================================================
# TIME
# =============================================================================
MINUTES_PER_TICK: int = 30
MINUTES_PER_DAY: int = 1440
DAYS_PER_MONTH: int = 30
MONTHS_PER_YEAR: int = 12
DAY_START_MINUTE: int = 6 * 60
NIGHT_START_MINUTE: int = 19 * 60
WINTER_MONTHS: tuple[int, ...] = (12, 1, 2)
WINTER_PREP_WINDOW_MINUTES: int = 180

AGE_YEARS_PER_TICK: float = 1.0 / 48.0

# =============================================================================
# WEATHER
# =============================================================================
WEATHER_POOLS: dict[str, list[str]] = {
    "winter": ["snowy", "cold", "cold", "rainy", "warm"],
    "spring": ["rainy", "warm", "warm", "cold", "rainy"],
    "summer": ["warm", "warm", "warm", "rainy", "cold"],
    "autumn": ["cold", "rainy", "warm", "cold", "rainy"],
}
MONTH_SEASONS: dict[int, str] = {
    12: "winter", 1: "winter", 2: "winter",
    3: "spring", 4: "spring", 5: "spring",
    6: "summer", 7: "summer", 8: "summer",
    9: "autumn", 10: "autumn", 11: "autumn",
}
WARM_NIGHT_CHANCE: float = 0.2
INITIAL_WEATHER: str = "cold"
INITIAL_NIGHT_TEMPERATURE: str = "cold"

# =============================================================================
# CIVLING
# =============================================================================
MEMORY_LIMIT: int = 10
VITAL_MIN: float = 0.0
VITAL_MAX: float = 100.0
INITIAL_HEALTH: float = 100.0
INITIAL_ENERGY: float = 70.0
INITIAL_HUNGER: float = 30.0
NEWBORN_HUNGER: float = 25.0
INITIAL_ADULT_AGE: float = 18.0
HUNGER_PER_TICK: float = 2.0

# =============================================================================
# ACTIONS
# =============================================================================
PLAY = "play"
LEARN = "learn"
EAT = "eat"
CARE = "care"
GATHER_FOOD = "gather_food"
GATHER_WOOD = "gather_wood"
BUILD_SHELTER = "build_shelter"
BUILD_STORAGE = "build_storage"
PREPARE_WARM_MEAL = "prepare_warm_meal"
CRAFT_CLOTHES = "craft_clothes"
REST = "rest"
EXPLORE = "explore"
REPRODUCE = "reproduce"

ACTIONS: tuple[str, ...] = (
    PLAY, LEARN, EAT, CARE, GATHER_FOOD, GATHER_WOOD, BUILD_SHELTER,
    BUILD_STORAGE, PREPARE_WARM_MEAL, CRAFT_CLOTHES, REST, EXPLORE, REPRODUCE,
)

MINOR_ACTIONS: tuple[str, ...] = (PLAY, LEARN, REST, EAT)
ADULT_ACTIONS: tuple[str, ...] = tuple(a for a in ACTIONS if a not in (PLAY, LEARN))

# Tasks that move a civling onto the shelter site when one exists
INDOOR_ACTIONS: frozenset[str] = frozenset({
    REST, EAT, PREPARE_WARM_MEAL, CRAFT_CLOTHES, CARE, REPRODUCE, LEARN, PLAY,
})

# Fixed minutes, or a (min, max) range sampled in tick-sized steps
ACTION_DURATION_MINUTES: dict[str, int | tuple[int, int]] = {
    PLAY: 60,
    LEARN: 60,
    EAT: 30,
    CARE: 60,
    GATHER_FOOD: (60, 120),
    GATHER_WOOD: (60, 120),
    BUILD_SHELTER: (120, 180),
    BUILD_STORAGE: (150, 210),
    PREPARE_WARM_MEAL: 60,
    CRAFT_CLOTHES: 90,
    REST: (60, 90),
    EXPLORE: (90, 150),
    REPRODUCE: 60,
}

ACTION_VALUES: dict[str, dict[str, float]] = {
    PLAY: {"energy_gain": 4, "hunger_delta": 3, "supervised_heal": 1, "alone_damage": 2},
    LEARN: {
        "chance_food": 0.15, "chance_wood": 0.15, "chance_fiber": 0.10,
        "energy_cost": 3, "hunger_delta": 3, "supervised_heal": 1, "alone_damage": 1,
    },
    EAT: {"food_cost": 1},
    CARE: {"energy_cost": 6, "hunger_delta": 4, "heal_target": 12},
    GATHER_FOOD: {"food": 3, "energy_cost": 5, "hunger_delta": 4},
    GATHER_WOOD: {"wood": 3, "chance_fiber": 0.30, "energy_cost": 6, "hunger_delta": 5},
    BUILD_SHELTER: {"energy_cost": 8, "hunger_delta": 6},
    BUILD_STORAGE: {"energy_cost": 8, "hunger_delta": 6},
    PREPARE_WARM_MEAL: {
        "food_cost": 1, "wood_cost": 1, "hunger_delta": -15, "energy_gain": 4,
    },
    CRAFT_CLOTHES: {"fiber_cost": 2, "energy_cost": 3, "hunger_delta": 3},
    REST: {"energy_gain": 18, "hunger_delta": 3},
    EXPLORE: {
        "chance_food": 0.35, "chance_wood": 0.35, "chance_fiber": 0.30,
        "energy_cost": 6, "hunger_delta": 6,
    },
    REPRODUCE: {"energy_cost": 10, "hunger_delta": 5},
}

EXPLORE_STEP: int = 3
WORK_SITE_OFFSET: int = 2

# =============================================================================
# MILESTONES
# =============================================================================
MILESTONE_SHELTER = "shelter"
MILESTONE_TOOLS = "tools"
MILESTONE_AGRICULTURE = "agriculture"
MILESTONE_FIRE = "fire"
MILESTONES: tuple[str, ...] = (
    MILESTONE_FIRE, MILESTONE_TOOLS, MILESTONE_SHELTER, MILESTONE_AGRICULTURE,
)
TOOLS_WOOD_THRESHOLD: int = 18
AGRICULTURE_FOOD_THRESHOLD: int = 30

# =============================================================================
# DECISION POLICY
# =============================================================================
FOOD_PRESSURE_HUNGER: float = 65.0
WOOD_TARGET: int = 12
ANTI_LOOP_MAX_HUNGER: float = 45.0
ANTI_LOOP_MEMORY_WINDOW: int = 4
ANTI_LOOP_MIN_REPEATS: int = 2
FAILURE_STREAK_LENGTH: int = 3
INNOVATION_PULSE_TICKS: int = 25
EXTINCTION_RISK_HEALTH: float = 35.0
EXTINCTION_RISK_HUNGER: float = 80.0
BUDGET_WINDOW_SECONDS: float = 3600.0
DECISION_LOG_LIMIT: int = 200

# =============================================================================
# REMOTE PROVIDER
# =============================================================================
REMOTE_SYSTEM_MESSAGE: str = "Decide a safe and useful next action. Output JSON only."
REMOTE_TEMPERATURE: float = 0.2
TRACE_CLIP_CHARS: int = 1200
PROMPT_MEMORY_ENTRIES: int = 3

# =============================================================================
# RUNTIME DEFAULTS
# =============================================================================
DEFAULT_TICK_MS: int = 900
DEFAULT_SNAPSHOT_EVERY_TICKS: int = 10
DEFAULT_RESTART_DELAY_MS: int = 2000
DEFAULT_AI_PROVIDER: str = "deterministic"
DEFAULT_ESCALATION_MODE: str = "direct"
DEFAULT_MAX_CALLS_PER_HOUR: int = 60
DEFAULT_LLM_BASE_URL: str = "http://localhost:11434/v1"
DEFAULT_LLM_MODEL: str = "qwen2.5:3b"
DEFAULT_DECISION_TIMEOUT_MS: int = 4000
DEFAULT_MAX_RETRIES: int = 1

# =============================================================================
# VISUALISATION
# =============================================================================
DASHBOARD_UPDATE_INTERVAL: int = 10  # ticks between live redraws
REPORT_DPI: int = 150
