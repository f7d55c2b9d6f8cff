"""
Constants used across the scheduling and notification engine.
"""

# Match generation
DEFAULT_MATCHES_PER_SEASON = 4  # Rounds per player when the league leaves it unset
MATCH_INTERVAL_DAYS = 7  # One round per week
MIN_REGISTERED_MEMBERS = 2

# Reminders
REMINDER_LEAD_DAYS = 7  # "starts in 1 week"

# Push delivery
EXPO_MAX_TOKENS_PER_REQUEST = 100  # Expo push API per-request cap
