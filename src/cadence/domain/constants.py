"""Centralized constants for the Cadence engine.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Scopes ----------
DEFAULT_SCOPE = "global"

# ---------- Session ----------
UNDO_HISTORY_LIMIT = 20
ESTIMATED_SECONDS_PER_ITEM = 30

# ---------- Selection ----------
LEARN_AHEAD_MINUTES = 10
STUCK_LEARNING_MINUTES = 15

# ---------- Sibling Index Cache ----------
GROUP_INDEX_TTL = 30.0  # seconds

# ---------- Scheduling ----------
MINUTES_PER_DAY = 1440
EASY_EASE_BONUS = 0.15
DEFAULT_LEARNING_STEPS = [1.0, 10.0]
DEFAULT_RELEARNING_STEPS = [10.0, 1440.0]

# ---------- Daily limits ----------
DEFAULT_NEW_ITEMS_PER_DAY = 20
DEFAULT_MAX_REVIEWS_PER_DAY = 200

# ---------- Persistence / HTTP ----------
SAVE_DEBOUNCE_SECONDS = 1.0
REQUEST_TIMEOUT = 30.0
