import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import bs4
import requests

from config import (
    MAX_FETCH_ATTEMPTS,
    PRICE_CACHE_TTL,
    SKINPORT_MIN_INTERVAL,
    STEAM_MIN_INTERVAL,
    USER_AGENT,
    Settings,
)
from errors import AuthError, ProviderError, RateLimited, Transient, Unavailable, is_retryable
from normalizer import (
    currency_iso,
    normalize_item_key,
    parse_price_number,
    parse_price_string,
    skinport_currency,
)
from rate_limiter import RateLimiter
from retries import exponential_backoff, retry_call

APP_ID = 730  # CS2 app id on Steam and Skinport

STEAM_PRICE_URL = "https://steamcommunity.com/market/priceoverview/"
STEAM_LISTING_URL = "https://steamcommunity.com/market/listings/{app_id}/{name}"
SKINPORT_ITEMS_URL = "https://api.skinport.com/v1/items"


def get_listing_url(item_key: str) -> str:
    """Return the Steam Community Market listing URL for an item."""
    return STEAM_LISTING_URL.format(app_id=APP_ID, name=quote(item_key, safe=""))


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class ProviderClient(ABC):
    """Rate-limited, cached price lookups against one marketplace."""

    name = "provider"
    timeout = 10
    requires_auth = False

    def __init__(
        self,
        min_interval: float,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        cache_ttl: float = PRICE_CACHE_TTL,
        max_attempts: int = MAX_FETCH_ATTEMPTS,
    ):
        self.session = session or requests.Session()
        self.clock = clock
        self.sleep = sleep
        self.cache_ttl = cache_ttl
        self.max_attempts = max_attempts
        self.limiter = RateLimiter(self.name, min_interval, clock=clock, sleep=sleep)
        self.cache: dict[str, tuple[float, float]] = {}

    @property
    @abstractmethod
    def currency(self) -> str:
        """ISO code of the currency prices are returned in."""

    def is_configured(self) -> bool:
        return True

    @abstractmethod
    def apply_settings(self, settings: Settings) -> None:
        """Pick up reloaded settings without losing rate-limit state."""

    def get_cached(self, item_key: str) -> float | None:
        """Return a cached price if it is still fresh."""
        cached = self.cache.get(item_key)
        if cached is None:
            return None
        price, fetched_at = cached
        if self.clock() - fetched_at >= self.cache_ttl:
            del self.cache[item_key]
            return None
        return price

    def store_cached(self, item_key: str, price: float) -> None:
        self.cache[item_key] = (price, self.clock())

    def clear_cache(self) -> None:
        """Drop all cached prices."""
        self.cache.clear()

    def fetch_price(self, item_key: str, use_cache: bool = True) -> float | None:
        """Fetch the current price of an item, or None if it has no listing."""
        item_key = normalize_item_key(item_key)

        if use_cache:
            cached = self.get_cached(item_key)
            if cached is not None:
                logging.debug(f"[{self.name}] Using cached price for {item_key}: {cached}")
                return cached

        price = retry_call(
            self.request_price,
            item_key,
            max_attempts=self.max_attempts,
            backoff=exponential_backoff,
            is_retryable=is_retryable,
            sleep=self.sleep,
            description=f"[{self.name}] Price request for {item_key}",
        )

        if price is not None and use_cache:
            self.store_cached(item_key, price)

        return price

    @abstractmethod
    def request_price(self, item_key: str) -> float | None:
        """Perform a single price request."""

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        """Send a paced GET request and classify failure responses."""
        self.limiter.wait()

        try:
            response = self.session.get(url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise Unavailable(f"[{self.name}] {e}") from e

        status = response.status_code

        if status == 429:
            cooldown = self.limiter.record_rate_limited()
            raise RateLimited(
                f"[{self.name}] Rate limited (429)",
                provider=self.name,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
                cooldown=cooldown,
            )

        if status in (401, 403):
            if self.requires_auth:
                raise AuthError(
                    f"[{self.name}] Authentication failed (HTTP {status})", provider=self.name
                )
            # Unauthenticated sources answer 403 when they block traffic for a while
            raise Transient(f"[{self.name}] Access denied (HTTP {status})", provider=self.name)

        if status >= 500:
            raise Transient(f"[{self.name}] Server error (HTTP {status})", provider=self.name)

        if status != 200:
            raise ProviderError(f"[{self.name}] HTTP {status}", provider=self.name)

        self.limiter.record_success()
        return response


class SteamMarketClient(ProviderClient):
    """Steam Community Market price overview client."""

    name = "Steam"

    def __init__(
        self,
        min_interval: float = STEAM_MIN_INTERVAL,
        currency: str = "24",
        user_agent: str = USER_AGENT,
        **kwargs: Any,
    ):
        super().__init__(min_interval, **kwargs)
        self.currency_code = str(currency)
        self.user_agent = user_agent

    @property
    def currency(self) -> str:
        return currency_iso(self.currency_code)

    def apply_settings(self, settings: Settings) -> None:
        self.limiter.min_interval = settings.steam_min_interval
        self.user_agent = settings.user_agent
        if str(settings.currency) != self.currency_code:
            self.currency_code = str(settings.currency)
            self.clear_cache()

    def get_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
            "Accept-Language": "en-US,en;q=0.9",
        }

    def get_params(self, item_key: str) -> dict[str, str | int]:
        return {
            "appid": APP_ID,
            "currency": self.currency_code,
            "market_hash_name": item_key,
        }

    def request_price(self, item_key: str) -> float | None:
        response = self.get(
            STEAM_PRICE_URL, params=self.get_params(item_key), headers=self.get_headers()
        )

        if not response.content:
            return None

        try:
            data = response.json()
        except ValueError:
            logging.warning(f"[Steam] Unparseable response for {item_key}")
            return None

        if not isinstance(data, dict) or not data:
            return None

        # e.g. "₹ 2,970.50", lowest_price first
        price_str = data.get("lowest_price") or data.get("median_price")
        if not price_str:
            logging.debug(f"[Steam] No listing for {item_key}")
            return None

        price = parse_price_string(price_str)
        logging.debug(f"[Steam] Parsed {price_str!r} as {price} for {item_key}")
        return price

    def fetch_image_url(self, item_key: str) -> str | None:
        """Scrape the listing page for the item image URL."""
        try:
            response = self.get(
                get_listing_url(item_key), headers={"User-Agent": self.user_agent}
            )
        except (ProviderError, Unavailable) as e:
            logging.debug(f"[Steam] Image lookup failed for {item_key}: {e}")
            return None

        soup = bs4.BeautifulSoup(response.text, "html.parser")

        image = soup.select_one("div.market_listing_largeimage img")
        if image and image.get("src"):
            return str(image["src"])

        meta = soup.select_one('meta[property="og:image"]')
        if meta and meta.get("content"):
            return str(meta["content"])

        return None


class SkinportClient(ProviderClient):
    """Skinport item catalog client."""

    name = "Skinport"
    timeout = 15
    requires_auth = True

    def __init__(
        self,
        min_interval: float = SKINPORT_MIN_INTERVAL,
        currency: str = "24",
        api_key: str = "",
        client_id: str = "",
        client_secret: str = "",
        **kwargs: Any,
    ):
        super().__init__(min_interval, **kwargs)
        self.requested_currency = skinport_currency(currency)
        self.api_key = api_key
        self.client_id = client_id
        self.client_secret = client_secret

    @property
    def currency(self) -> str:
        return self.requested_currency

    def is_configured(self) -> bool:
        return bool(self.api_key or (self.client_id and self.client_secret))

    def apply_settings(self, settings: Settings) -> None:
        self.limiter.min_interval = settings.skinport_min_interval
        self.api_key = settings.skinport_api_key
        self.client_id = settings.skinport_client_id
        self.client_secret = settings.skinport_client_secret
        requested_currency = skinport_currency(settings.currency)
        if requested_currency != self.requested_currency:
            self.requested_currency = requested_currency
            self.clear_cache()

    def get_auth(self) -> dict[str, Any]:
        """Return requests kwargs carrying the configured credentials."""
        if self.client_id and self.client_secret:
            return {"auth": (self.client_id, self.client_secret)}
        if self.api_key:
            return {"headers": {"Authorization": f"Bearer {self.api_key}"}}
        raise AuthError(
            "[Skinport] SKINPORT_API_KEY or SKINPORT_CLIENT_ID/SKINPORT_CLIENT_SECRET required",
            provider=self.name,
        )

    def get_params(self) -> dict[str, str | int]:
        return {
            "app_id": APP_ID,
            "currency": self.requested_currency,
            "tradable": 1,
        }

    def request_price(self, item_key: str) -> float | None:
        auth = self.get_auth()
        headers = {"Accept": "application/json", **auth.pop("headers", {})}

        response = self.get(
            SKINPORT_ITEMS_URL, params=self.get_params(), headers=headers, **auth
        )

        try:
            data = response.json()
        except ValueError:
            logging.warning(f"[Skinport] Unparseable response for {item_key}")
            return None

        if not isinstance(data, list):
            logging.warning(f"[Skinport] Unexpected response format for {item_key}")
            return None

        prices = self.extract_prices(data)

        # One catalog response prices every item, so warm the cache with all of them
        for name, price in prices.items():
            self.store_cached(name, price)

        price = prices.get(item_key.lower())
        if price is None:
            logging.debug(f"[Skinport] No listing for {item_key}")
        return price

    def get_cached(self, item_key: str) -> float | None:
        return super().get_cached(item_key.lower())

    def store_cached(self, item_key: str, price: float) -> None:
        super().store_cached(item_key.lower(), price)

    def extract_prices(self, data: list[dict[str, Any]]) -> dict[str, float]:
        """Map lowercased market hash names to their best available price."""
        prices = {}
        for item in data:
            name = item.get("market_hash_name")
            if not name:
                continue
            price = parse_price_number(item.get("suggested_price")) or parse_price_number(
                item.get("min_price")
            )
            if price is not None:
                prices[name.lower()] = price
        return prices


def build_providers(settings: Settings, **kwargs: Any) -> dict[str, ProviderClient]:
    """Create one client per supported provider from settings."""
    return {
        "steam": SteamMarketClient(
            min_interval=settings.steam_min_interval,
            currency=settings.currency,
            user_agent=settings.user_agent,
            **kwargs,
        ),
        "skinport": SkinportClient(
            min_interval=settings.skinport_min_interval,
            currency=settings.currency,
            api_key=settings.skinport_api_key,
            client_id=settings.skinport_client_id,
            client_secret=settings.skinport_client_secret,
            **kwargs,
        ),
    }
