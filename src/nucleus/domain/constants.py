"""Centralized constants for the nucleus engine.

Numeric defaults of the memory model and per-category thresholds live here
so every layer imports from a single source of truth. Tunable scheduling
parameters are exposed through ``EngineConfig``; these are the fixed ones.
"""

# ---------- Time ----------
SECONDS_PER_DAY = 86400.0

# ---------- Memory model ----------
DEFAULT_DIFFICULTY = 0.5
DIFFICULTY_FAIL_STEP = 0.2
DIFFICULTY_HARD_STEP = 0.1
DIFFICULTY_EASY_STEP = 0.15
DIFFICULTY_EASY_FLOOR = 0.1
MIN_STABILITY_DAYS = 0.5
MASTERY_HORIZON_DAYS = 365.0  # stability that maps to 100% mastery
YOUNG_STABILITY_DAYS = 1.0
YOUNG_CORRECT_MASTERY = 15.0
EARLY_CORRECT_MASTERY_FLOOR = 20.0
DIFFICULTY_MASTERY_PENALTY = 0.2
RETRIEVABILITY_GAIN_WEIGHT = 2.0

# ---------- Timing classification ----------
RUSH_BELOW_SEC = 5.0
SLOW_ABOVE_SEC = 60.0

# ---------- Urgency ----------
URGENCY_CRITICAL_BELOW = 0.70
URGENCY_ALERT_BELOW = 0.85
GOLD_WINDOW_HOURS = 12.0

# ---------- Reinforcement priority ----------
PRIORITY_DUE_BOOST = 1000.0
PRIORITY_MAX_LATENESS = 100.0
PRIORITY_RECENT_ERROR = 500.0

# ---------- Activity thresholds ----------
QUESTIONS_ACCURACY_TARGET = 0.85
GAPS_ACCURACY_TARGET = 1.0
FLASHCARDS_ACCURACY_TARGET = 1.0
FLASHCARD_PASS_RATING = 2  # "good" or better
PAIRS_MAX_SESSION_ERRORS = 6
CRITICAL_OVERDUE_DAYS = 7.0
CRITICAL_DOMAIN_BELOW = 25.0

# ---------- Linkage ----------
TRAIL_PREFIX = "TRILHA_"
RESERVED_TAGS = frozenset({"pair-match", "literalness", "flashcard"})
MIN_TAG_KEY_LENGTH = 3
GENERATED_ID_PREFIXES = ("q_", "fc_", "gap_", "temp_")
TEMP_ID_PREFIX = "temp"
PAIR_TAG = "pair-match"
