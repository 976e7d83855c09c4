import os
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

# --------------------------------------------------
# Logging
# --------------------------------------------------
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# --------------------------------------------------
# API Configuration
# --------------------------------------------------
REQUIRED_API_KEY = os.environ.get("VOTE_PROCESSOR_TOKEN")
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("ALLOWED_ORIGINS", "").split(",")
    if origin.strip()
]

# --------------------------------------------------
# Results Cache Configuration
# --------------------------------------------------
RESULTS_CACHE_TTL_SECONDS = int(os.environ.get("RESULTS_CACHE_TTL_SECONDS", "3600"))

# --------------------------------------------------
# Visual Simplification
# --------------------------------------------------
# Votes at or above this power stay individual in time-ordered vote lists
ACCUMULATE_VOTING_POWER_THRESHOLD = float(
    os.environ.get("ACCUMULATE_VOTING_POWER_THRESHOLD", "50000")
)
# Share of a choice's power that must be covered by individually drawn segments
SEGMENT_POWER_SHARE = float(os.environ.get("SEGMENT_POWER_SHARE", "0.95"))
