"""
Constants used across the settlement engine.
"""

# Pot constants
PLATFORM_FEE_PERCENTAGE = 0.1  # Withheld from the gross entry fees
BEST_SCORES_COUNTED = 4  # Lowest N player scores make up a team's total

# Default prize split when a league defines no rewards (positions 1-5)
DEFAULT_REWARD_SPLITS = [
    {"position": 1, "percentage": 0.6, "type": "cash", "product_id": ""},
    {"position": 2, "percentage": 0.15, "type": "cash", "product_id": ""},
    {"position": 3, "percentage": 0.125, "type": "cash", "product_id": ""},
    {"position": 4, "percentage": 0.075, "type": "cash", "product_id": ""},
    {"position": 5, "percentage": 0.05, "type": "cash", "product_id": ""},
]

# Lifecycle recovery
STUCK_AFTER_MINUTES = 60
POLL_INTERVAL_SECONDS = 300  # 5 minutes
