import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _int_list(value: str):
    return [int(v) for v in value.split(",") if v.strip()]


def _bands(value: str):
    # "09:00-12:00,13:00-18:00"
    bands = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        start, end = part.split("-")
        bands.append((start.strip(), end.strip()))
    return bands


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to app.py as checkup.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "checkup.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "checkup_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Daily slot grid: half-hour steps, lunch gap between the bands
    SLOT_BANDS = _bands(os.getenv("SLOT_BANDS", "09:00-12:00,13:00-18:00"))
    SLOT_INTERVAL_MINUTES = int(os.getenv("SLOT_INTERVAL_MINUTES", "30"))

    # Weekly closure, 0=Sunday .. 6=Saturday
    CLOSED_WEEKDAYS = _int_list(os.getenv("CLOSED_WEEKDAYS", "0"))

    # Customers may book from tomorrow up to 90 days ahead
    BOOKING_MIN_DAYS_AHEAD = int(os.getenv("BOOKING_MIN_DAYS_AHEAD", "1"))
    BOOKING_MAX_DAYS_AHEAD = int(os.getenv("BOOKING_MAX_DAYS_AHEAD", "90"))

    # Reservation number / order id regeneration on collision
    RESERVATION_NUMBER_RETRIES = int(os.getenv("RESERVATION_NUMBER_RETRIES", "5"))

    # Stripe
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "krw")

    # Only read by the explicit `flask sweep-pending` command
    PENDING_TTL_HOURS = int(os.getenv("PENDING_TTL_HOURS", "24"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Seed default roles at startup (needs migrated tables)
    SEED_ROLES_ON_STARTUP = os.getenv("SEED_ROLES_ON_STARTUP", "true").lower() == "true"

    # Basic app settings
    DEBUG = False
