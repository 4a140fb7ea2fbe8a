"""Tuning constants for the value chain simulation."""

# Health points gained per $1M invested
BASE_INVESTMENT_EFFECTIVENESS = 2

# Investment into an activity at or above this health is only half as effective
DIMINISHING_RETURNS_THRESHOLD = 80
DIMINISHING_RETURNS_MULTIPLIER = 0.5

MIN_HEALTH = 0
MAX_HEALTH = 100

# Budget each cycle is a fixed share of revenue
BUDGET_PERCENTAGE = 0.05
BUDGET_CAS_MULTIPLIER = 0.1
# Allows for float noise when comparing spend against budget
BUDGET_TOLERANCE = 0.01

MARGIN_CAS_MULTIPLIER = 0.05

# CAS points per unit of linkage effectiveness bonus
LINKAGE_SCORE_SCALE = 30
NVA_DRAG_MULTIPLIER = 0.5
SHOCK_SCORE_MULTIPLIER = 0.2
SHOCK_IMMUNITY_BONUS = 2

STARTING_REVENUE = 1000  # $1B, in millions
STARTING_OPERATING_PROFIT = 50
STARTING_MARGIN = 5  # percent

MAX_CYCLES = 4
DEFAULT_CYCLE_TIME = 300  # seconds
DEFAULT_TEAM_COUNT = 8
