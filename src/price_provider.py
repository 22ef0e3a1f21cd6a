import logging
from collections.abc import Callable

from config import Settings, load_settings
from currency import ExchangeRateConverter
from errors import AuthError
from providers import ProviderClient


def provider_order(settings: Settings, providers: dict[str, ProviderClient]) -> list[str]:
    """Return provider names in the order they should be tried."""
    skinport = providers.get("skinport")
    skinport_ready = skinport is not None and skinport.is_configured()
    order = []

    if settings.price_provider == "skinport":
        if skinport_ready:
            order.append("skinport")
        if settings.use_price_fallback:
            order.append("steam")
    elif settings.price_provider == "both":
        # Experimental: every configured provider, first positive price wins
        if skinport_ready:
            order.append("skinport")
        order.append("steam")
    else:
        order.append("steam")
        if settings.use_price_fallback and skinport_ready:
            order.append("skinport")

    return [name for name in order if name in providers]


class PriceProvider:
    """Fetches a price through the configured providers with fallback.

    Prices are returned in the primary (Steam) currency; prices from other
    providers are converted through the exchange rate converter.
    """

    def __init__(
        self,
        settings: Settings,
        providers: dict[str, ProviderClient],
        converter: ExchangeRateConverter,
        settings_loader: Callable[[], Settings] = load_settings,
    ):
        self.settings = settings
        self.providers = providers
        self.converter = converter
        self.settings_loader = settings_loader
        self.disabled: set[str] = set()

    @property
    def canonical_currency(self) -> str:
        return self.providers["steam"].currency

    def reload(self, settings: Settings | None = None) -> None:
        """Swap in new settings, re-reading the environment if none are given."""
        new_settings = settings or self.settings_loader()

        if self.disabled and new_settings != self.settings:
            logging.info(
                f"[Price Provider] Settings changed, re-enabling {', '.join(sorted(self.disabled))}"
            )
            self.disabled.clear()

        for provider in self.providers.values():
            provider.apply_settings(new_settings)
        self.converter.fallback_rate = new_settings.fallback_exchange_rate

        self.settings = new_settings

    def active_order(self) -> list[str]:
        return [
            name
            for name in provider_order(self.settings, self.providers)
            if name not in self.disabled
        ]

    def get_price(self, item_key: str) -> float | None:
        """Return the price of an item, trying providers in order."""
        order = self.active_order()
        logging.debug(
            f"[Price Provider] Config: provider={self.settings.price_provider}, "
            f"fallback={self.settings.use_price_fallback}, order={order}"
        )

        if not order:
            logging.error("[Price Provider] No providers configured. Check your environment")
            return None

        last_error: Exception | None = None

        for index, name in enumerate(order):
            provider = self.providers[name]
            is_last = index == len(order) - 1
            next_name = "none" if is_last else order[index + 1]

            try:
                price = provider.fetch_price(item_key)
            except Exception as e:
                last_error = e
                if is_last:
                    logging.error(f"[Price Provider] {name} failed for {item_key}: {e}")
                    if isinstance(e, AuthError):
                        logging.error(f"[Price Provider] Disabling {name} until settings change")
                        self.disabled.add(name)
                    raise
                logging.warning(
                    f"[Price Provider] {name} failed for {item_key}: {e}. Falling back to {next_name}"
                )
                continue

            if price is not None and price > 0:
                converted = self.to_canonical(price, provider)
                if converted is not None:
                    return converted
                logging.warning(
                    f"[Price Provider] No exchange rate for {provider.currency} -> {self.canonical_currency}"
                )

            if not is_last:
                logging.info(
                    f"[Price Provider] {name} returned no price for {item_key}, falling back to {next_name}"
                )

        if last_error is not None:
            raise last_error

        return None

    def to_canonical(self, price: float, provider: ProviderClient) -> float | None:
        """Convert a provider price into the canonical currency."""
        canonical = self.canonical_currency
        if provider.currency == canonical:
            return price

        converted = self.converter.convert(price, provider.currency, canonical)
        logging.debug(
            f"[Price Provider] Converted {price} {provider.currency} to {converted} {canonical}"
        )
        return converted
