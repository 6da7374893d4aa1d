"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

POINTS_PER_STAR = 20
DEFAULT_LIST_LIMIT = 200
DEFAULT_RECENT_DAYS = 14
DEFAULT_LEADERBOARD_LIMIT = 50
