"""
Constants Module - Centralized configuration values
===================================================

PURPOSE: Single source of truth for the defaults used by the booking workflow
PATTERN: Modular constants organized by category
SCOPE: Application-wide configuration values

Runtime overrides come from :mod:`infrastructure.settings`.
"""

# Reservation lifecycle
BOOKING_TYPES = ("open", "private")

# Booking rules
MIN_DURATION_HOURS = 1
MAX_DURATION_HOURS = 3
DEFAULT_TIMEZONE = "UTC"

# Auto-accept
AUTO_ACCEPT_DELAY_MINUTES = 30
AUTO_ACCEPT_POLL_SECONDS = 15.0

# Conflict detector failure handling: closed | open | raise
DEFAULT_CONFLICT_FAILURE_POLICY = "closed"

# Message cache
MESSAGE_CACHE_PREFIX = "@message_cache_"
MESSAGE_CACHE_METADATA_KEY = "@message_cache_metadata"
MESSAGE_CACHE_TTL_HOURS = 12
MESSAGE_CACHE_MAX_MESSAGES = 50
MESSAGE_CACHE_MAX_CONVERSATIONS = 20

# Storage locations
DEFAULT_RESERVATIONS_FILE = "data/reservations.json"
DEFAULT_MESSAGE_CACHE_FILE = "data/message_cache.json"
DEFAULT_LOG_DIRECTORY = "logs/latest_log"
