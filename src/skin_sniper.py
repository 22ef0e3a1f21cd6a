# ================================================================================
# =                                 SKIN_SNIPER                                  =
# ================================================================================

import logging
from pathlib import Path
from typing import Never

from config import Settings, load_settings
from currency import ExchangeRateConverter
from notifier import WebhookNotifier
from price_provider import PriceProvider
from providers import build_providers
from scheduler import Scheduler
from store import SQLiteStore


def setup_logging(level: str = "INFO") -> None:
    """Log to logs/skin_sniper.log and the console."""
    Path("logs").mkdir(exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler("logs/skin_sniper.log"),
            logging.StreamHandler(),
        ],
    )


def build_scheduler(settings: Settings) -> Scheduler:
    """Wire providers, converter, notifier and store into a scheduler."""
    providers = build_providers(settings)
    converter = ExchangeRateConverter(fallback_rate=settings.fallback_exchange_rate)
    price_provider = PriceProvider(settings, providers, converter)

    return Scheduler(
        store=SQLiteStore(settings.database),
        price_provider=price_provider,
        notifier=WebhookNotifier.from_settings(settings),
        interval_minutes=settings.check_interval_minutes,
        image_lookup=providers["steam"].fetch_image_url,
    )


def skin_sniper() -> Never:
    """Main entry point for skin_sniper."""
    settings = load_settings()
    setup_logging(settings.log_level)

    logging.info(
        f"Starting skin_sniper (provider: {settings.price_provider}, "
        f"fallback: {settings.use_price_fallback}, "
        f"skinport configured: {settings.skinport_configured})"
    )
    logging.info("Press Ctrl+C to stop")

    build_scheduler(settings).run_forever()


def main() -> None:
    try:
        skin_sniper()
    except KeyboardInterrupt:
        logging.info("Skin sniper stopped")
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        raise


if __name__ == "__main__":
    main()
