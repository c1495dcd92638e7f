"""Centralized constants for Times News."""

# Channel naming convention
TIMES_CHANNEL_PREFIX = "times-"

# Trailing window for the activity digest (minutes)
DEFAULT_ACTIVITY_WINDOW_MINUTES = 60

# Block action ids for the watch-state toggle buttons
ACTION_STOP_WATCHING = "stop_watching"
ACTION_APPROVE_WATCHING = "approve_watching"

# Separator used in the encoded channel reference carried by toggle buttons
CHANNEL_PROPS_SEPARATOR = "|"

# Slack
SLACK_API_BASE = "https://slack.com/api"
SLACK_PAGE_LIMIT = 200
SLACK_NOT_IN_CHANNEL = "not_in_channel"
SLACK_HASH_CONFLICT = "hash_conflict"

# Slack request signing: reject requests older than this (seconds)
SLACK_SIGNATURE_MAX_AGE = 60 * 5
