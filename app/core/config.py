import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/campus_preorder_db")

# Application Metadata
PROJECT_NAME = "Campus Pre-Order Service"
VERSION = "1.0.0"

# Stale-Order Watchdog
WATCHDOG_INTERVAL = int(os.getenv("WATCHDOG_INTERVAL", 60)) # Seconds between sweeps of ready orders
READY_WARNING_MINUTES = int(os.getenv("READY_WARNING_MINUTES", 25)) # Final warning to the customer
READY_EXPIRY_MINUTES = int(os.getenv("READY_EXPIRY_MINUTES", 30)) # Urgent alert / auto-cancel
WATCHDOG_AUTO_CANCEL = _env_bool("WATCHDOG_AUTO_CANCEL", True) # False = alert only

# Pickup codes
PICKUP_CODE_LENGTH = int(os.getenv("PICKUP_CODE_LENGTH", 4)) # 4 or 5 digits
PICKUP_CODE_ATTEMPTS = int(os.getenv("PICKUP_CODE_ATTEMPTS", 20)) # Retries to dodge active-code collisions

# Payment axis (kept independent of status unless switched on)
ACCEPT_MARKS_PAID = _env_bool("ACCEPT_MARKS_PAID", False)
REQUIRE_PAYMENT_BEFORE_READY = _env_bool("REQUIRE_PAYMENT_BEFORE_READY", False)
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "INR")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
