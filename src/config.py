import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Database
DATABASE = Path("data/trackers.db")

# Providers
PRICE_PROVIDER = "steam"  # steam, skinport or both
STEAM_MIN_INTERVAL = 10.0  # Seconds between Steam requests
SKINPORT_MIN_INTERVAL = 37.5  # Skinport allows 8 requests per 5 minutes
PRICE_CACHE_TTL = 300  # Seconds a fetched price stays fresh
MAX_FETCH_ATTEMPTS = 3
USER_AGENT = "PriceTracker/1.0"

# Currency
CURRENCY = "24"  # Steam currency code, 24 = INR
FALLBACK_EXCHANGE_RATE = 83.5  # Last-resort USD rate when the rate service is down
EXCHANGE_RATE_TTL = 3600
EXCHANGE_RATE_MIN_FETCH_INTERVAL = 300

# Scheduling
CHECK_INTERVAL_MINUTES = 5

# Notifications
MAX_DISPATCH_ATTEMPTS = 3


def env_bool(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment."""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def env_seconds_from_ms(name: str, default: float) -> float:
    """Read a millisecond interval from the environment as seconds."""
    value = os.getenv(name)
    if not value:
        return default
    return float(value) / 1000


@dataclass(frozen=True)
class Settings:
    price_provider: str = PRICE_PROVIDER
    use_price_fallback: bool = True
    steam_min_interval: float = STEAM_MIN_INTERVAL
    skinport_min_interval: float = SKINPORT_MIN_INTERVAL
    check_interval_minutes: int = CHECK_INTERVAL_MINUTES
    currency: str = CURRENCY
    skinport_api_key: str = ""
    skinport_client_id: str = ""
    skinport_client_secret: str = ""
    user_agent: str = USER_AGENT
    discord_webhook_url: str = ""
    fallback_exchange_rate: float = FALLBACK_EXCHANGE_RATE
    database: Path = DATABASE
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current environment."""
        return cls(
            price_provider=os.getenv("PRICE_PROVIDER", PRICE_PROVIDER).strip().lower(),
            use_price_fallback=env_bool("USE_PRICE_FALLBACK", True),
            steam_min_interval=env_seconds_from_ms(
                "STEAM_API_MIN_INTERVAL_MS", STEAM_MIN_INTERVAL
            ),
            skinport_min_interval=env_seconds_from_ms(
                "SKINPORT_API_MIN_INTERVAL_MS", SKINPORT_MIN_INTERVAL
            ),
            check_interval_minutes=max(
                1, int(os.getenv("CHECK_INTERVAL_MINUTES", CHECK_INTERVAL_MINUTES))
            ),
            currency=os.getenv("CURRENCY", CURRENCY).strip(),
            skinport_api_key=os.getenv("SKINPORT_API_KEY", ""),
            skinport_client_id=os.getenv("SKINPORT_CLIENT_ID", ""),
            skinport_client_secret=os.getenv("SKINPORT_CLIENT_SECRET", ""),
            user_agent=os.getenv("USER_AGENT", USER_AGENT),
            discord_webhook_url=os.getenv("DISCORD_WEBHOOK_URL", ""),
            fallback_exchange_rate=float(
                os.getenv("FALLBACK_EXCHANGE_RATE", FALLBACK_EXCHANGE_RATE)
            ),
            database=Path(os.getenv("DATABASE", str(DATABASE))),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def skinport_configured(self) -> bool:
        return bool(
            self.skinport_api_key
            or (self.skinport_client_id and self.skinport_client_secret)
        )


def load_settings() -> Settings:
    """Load .env into the environment and build settings from it."""
    load_dotenv(override=True)
    return Settings.from_env()
