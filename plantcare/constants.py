"""
Shared constants used across the application.

Care types are stored by key; display names are used in API payloads and
log messages.
"""

WATERING = "watering"
FERTILIZING = "fertilizing"

# Care type options (key, display name)
CARE_TYPES = [
    (WATERING, "Watering"),
    (FERTILIZING, "Fertilizing"),
]

CARE_TYPE_NAMES = dict(CARE_TYPES)

# Placeholder shown when the plant catalog row is missing from a join
UNKNOWN_PLANT_NAME = "Unknown plant"

# Fixed 6-week calendar grid
CALENDAR_GRID_DAYS = 42
