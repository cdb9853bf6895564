import os
from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./coi_tracker.db")
# Seconds a SQLite connection waits on another writer before giving up
SQLITE_BUSY_TIMEOUT_SECONDS = float(os.environ.get("SQLITE_BUSY_TIMEOUT_SECONDS", "30"))

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Approval policy: advisory | auto_approve | auto_decide
APPROVAL_ADVISORY = "advisory"
APPROVAL_AUTO_APPROVE = "auto_approve"
APPROVAL_AUTO_DECIDE = "auto_decide"
APPROVAL_POLICIES = (APPROVAL_ADVISORY, APPROVAL_AUTO_APPROVE, APPROVAL_AUTO_DECIDE)
APPROVAL_POLICY = os.environ.get("APPROVAL_POLICY", APPROVAL_ADVISORY).lower()

# Expiration reminders
REMINDER_KIND = os.environ.get("REMINDER_KIND", "SMS_EXPIRY")
DELIVERY_MAX_ATTEMPTS = int(os.environ.get("DELIVERY_MAX_ATTEMPTS", "3"))
DELIVERY_RETRY_BACKOFF_SECONDS = float(os.environ.get("DELIVERY_RETRY_BACKOFF_SECONDS", "1.0"))

# Background sweep + reminder loop
SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "false").lower() == "true"
SCHEDULER_INTERVAL_SECONDS = int(os.environ.get("SCHEDULER_INTERVAL_SECONDS", "3600"))


def parse_thresholds(raw: str) -> tuple[int, ...]:
    """Parse '30,15,7' into a descending tuple of unique positive day counts"""
    values = set()
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        days = int(part)
        if days <= 0:
            raise ValueError(f"Reminder threshold must be positive, got {days}")
        values.add(days)
    if not values:
        raise ValueError("At least one reminder threshold is required")
    return tuple(sorted(values, reverse=True))


REMINDER_THRESHOLDS = parse_thresholds(os.environ.get("REMINDER_THRESHOLDS", "30,15,7"))

if APPROVAL_POLICY not in APPROVAL_POLICIES:
    raise ValueError(f"APPROVAL_POLICY must be one of {', '.join(APPROVAL_POLICIES)}")
