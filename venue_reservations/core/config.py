import os
from dotenv import load_dotenv
from pydantic import BaseModel

# Load variables from .env
load_dotenv()


class Settings(BaseModel):
    database_url: str = "sqlite+aiosqlite:///./reservations.db"
    environment: str = "production"  # "development" exposes error details

    # Auth (bearer JWT issued by the identity service)
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 12

    # Reservation codes and QR tickets
    qr_ttl_hours: int = 48  # Expiry of the ticket issued on create
    qr_renew_ttl_hours: int = 24  # Expiry of a renewed ticket
    reservation_code_attempts: int = 25

    # Public assets
    public_images_base: str = ""

    # Notifications
    notifications_enabled: bool = True

    # Rate limiting settings
    rate_limit_enabled: bool = True  # Killswitch for quick disable
    rate_limit_public_booking: str = "20/minute"

    # Logging settings
    log_format: str = "console"  # Options: "console", "json"
    log_slow_request_threshold_ms: int = 500  # Log timing only if duration > threshold

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in {"development", "dev", "local"}


settings = Settings(
    database_url=os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./reservations.db"),
    environment=os.environ.get("ENVIRONMENT", "production"),
    jwt_secret=os.environ.get("JWT_SECRET", "change-me"),
    jwt_algorithm=os.environ.get("JWT_ALGORITHM", "HS256"),
    access_token_expire_minutes=int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", "720")),
    qr_ttl_hours=int(os.environ.get("QR_TTL_HOURS", "48")),
    qr_renew_ttl_hours=int(os.environ.get("QR_RENEW_TTL_HOURS", "24")),
    reservation_code_attempts=int(os.environ.get("RESERVATION_CODE_ATTEMPTS", "25")),
    public_images_base=os.environ.get("PUBLIC_IMAGES_BASE", ""),
    notifications_enabled=os.environ.get("NOTIFICATIONS_ENABLED", "true").lower() == "true",
    rate_limit_enabled=os.environ.get("RATE_LIMIT_ENABLED", "true").lower() == "true",
    rate_limit_public_booking=os.environ.get("RATE_LIMIT_PUBLIC_BOOKING", "20/minute"),
    log_format=os.environ.get("LOG_FORMAT", "console"),
    log_slow_request_threshold_ms=int(
        os.environ.get("LOG_SLOW_REQUEST_THRESHOLD_MS", "500")
    ),
)
