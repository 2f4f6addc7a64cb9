import os

ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

DAILY_FREE_INTEREST_LIMIT = int(os.getenv("DAILY_FREE_INTEREST_LIMIT", "1"))
INTEREST_COST_CREDITS = int(os.getenv("INTEREST_COST_CREDITS", "1"))
INTEREST_COOLDOWN_DAYS = int(os.getenv("INTEREST_COOLDOWN_DAYS", "14"))
REVERSAL_WINDOW_HOURS = int(os.getenv("REVERSAL_WINDOW_HOURS", "24"))
MATCH_EXPIRY_DAYS = int(os.getenv("MATCH_EXPIRY_DAYS", "30"))
INTEREST_TIMEZONE = os.getenv("INTEREST_TIMEZONE", "Asia/Seoul")

# Bounds on a single submit/cancel unit of work.
PAIR_LOCK_TIMEOUT_SECONDS = float(os.getenv("PAIR_LOCK_TIMEOUT_SECONDS", "5"))
STATEMENT_TIMEOUT_MS = int(os.getenv("STATEMENT_TIMEOUT_MS", "5000"))
TRANSIENT_RETRY_AFTER_SECONDS = int(os.getenv("TRANSIENT_RETRY_AFTER_SECONDS", "1"))

RECOMMENDATION_DEFAULT_COUNT = int(os.getenv("RECOMMENDATION_DEFAULT_COUNT", "10"))
SHARED_INTEREST_POINTS = int(os.getenv("SHARED_INTEREST_POINTS", "10"))

RL_INTEREST_SUBMIT_LIMIT = int(os.getenv("RL_INTEREST_SUBMIT_LIMIT", "60"))
RL_INTEREST_CANCEL_LIMIT = int(os.getenv("RL_INTEREST_CANCEL_LIMIT", "30"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))
