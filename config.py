import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as facultyslot.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "facultyslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer session lifetime: 8 hours
    SESSION_LIFETIME_SECONDS = int(os.getenv("SESSION_LIFETIME_SECONDS", str(8 * 60 * 60)))

    # Idle timeout: 2 hours
    IDLE_TIMEOUT_SECONDS = int(os.getenv("IDLE_TIMEOUT_SECONDS", str(2 * 60 * 60)))

    # Per-slot critical section
    SLOT_LOCK_TIMEOUT_SECONDS = float(os.getenv("SLOT_LOCK_TIMEOUT_SECONDS", "5"))

    # Waitlist offer window
    WAITLIST_RESPONSE_HOURS = int(os.getenv("WAITLIST_RESPONSE_HOURS", "24"))

    # Generation bounds
    RECURRING_MAX_OCCURRENCES = int(os.getenv("RECURRING_MAX_OCCURRENCES", "52"))
    BULK_SLOT_MAX_DAYS = int(os.getenv("BULK_SLOT_MAX_DAYS", "366"))

    # Maintenance commands
    REMINDER_LEAD_HOURS = int(os.getenv("REMINDER_LEAD_HOURS", "24"))
    NOTIFICATION_RETENTION_DAYS = int(os.getenv("NOTIFICATION_RETENTION_DAYS", "30"))

    # Email (SMTP), optional
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False
