"""
Constants used across the league scheduler.
"""

# Game sizing
QUORUM = 10  # Whitelisted yes-votes needed to create a game
MAX_PARTICIPANTS = 10
TEAM_SIZE = 5

# Voting window: current month plus the next two
VOTING_WINDOW_MONTHS = 3

# Default kick-off time and duration for calendar entries
DEFAULT_GAME_TIME = "10:00"
GAME_DURATION_HOURS = 1
GAME_TITLE = "Partido de Fútbol"

# Settings keys
CURRENT_MONTH_KEY = "current_month"
CURRENT_YEAR_KEY = "current_year"
