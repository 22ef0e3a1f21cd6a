import logging
import time
from collections.abc import Callable

import requests

from config import EXCHANGE_RATE_MIN_FETCH_INTERVAL, EXCHANGE_RATE_TTL, FALLBACK_EXCHANGE_RATE

EXCHANGE_RATE_URL = "https://api.exchangerate-api.com/v4/latest/{base}"

# FALLBACK_EXCHANGE_RATE is quoted as 1 USD in INR
FALLBACK_PAIR = ("USD", "INR")


class ExchangeRateConverter:
    """Converts amounts between currencies using cached exchange rates.

    Rates are cached for an hour and fetched at most once every five minutes.
    When the rate service is unreachable a stale cached rate is used, and
    failing that the static USD/INR fallback rate. Other pairs have no
    static rate.
    """

    def __init__(
        self,
        fallback_rate: float = FALLBACK_EXCHANGE_RATE,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
        ttl: float = EXCHANGE_RATE_TTL,
        min_fetch_interval: float = EXCHANGE_RATE_MIN_FETCH_INTERVAL,
    ):
        self.fallback_rate = fallback_rate
        self.session = session or requests.Session()
        self.clock = clock
        self.ttl = ttl
        self.min_fetch_interval = min_fetch_interval

        self.rates: dict[tuple[str, str], tuple[float, float]] = {}
        self.last_fetch_time: float | None = None

    def fetch_rate(self, from_currency: str, to_currency: str) -> float:
        """Fetch a fresh rate from the exchange rate service."""
        response = self.session.get(
            EXCHANGE_RATE_URL.format(base=from_currency),
            headers={"Accept": "application/json"},
            timeout=5,
        )
        response.raise_for_status()
        rate = response.json().get("rates", {}).get(to_currency)
        if not rate:
            raise KeyError(f"Exchange rate for {to_currency} not found in response")
        return float(rate)

    def static_rate(self, from_currency: str, to_currency: str) -> float | None:
        """Return the configured fallback rate for a pair, if it covers it."""
        if (from_currency, to_currency) == FALLBACK_PAIR:
            return self.fallback_rate
        if (to_currency, from_currency) == FALLBACK_PAIR:
            return 1 / self.fallback_rate
        return None

    def get_rate(self, from_currency: str, to_currency: str) -> float | None:
        """Return the rate to multiply a from_currency amount by, or None."""
        key = (from_currency, to_currency)
        cached = self.rates.get(key)
        now = self.clock()

        if cached and now - cached[1] < self.ttl:
            return cached[0]

        recently_fetched = (
            self.last_fetch_time is not None
            and now - self.last_fetch_time < self.min_fetch_interval
        )
        if cached and recently_fetched:
            logging.debug(f"[Currency] Using stale rate for {from_currency}->{to_currency}")
            return cached[0]

        try:
            rate = self.fetch_rate(from_currency, to_currency)
        except (requests.RequestException, KeyError, ValueError) as e:
            logging.error(f"[Currency] Error fetching exchange rate: {e}")
            if cached:
                logging.warning(
                    f"[Currency] Using stale rate: 1 {from_currency} = {cached[0]} {to_currency}"
                )
                return cached[0]

            rate = self.static_rate(from_currency, to_currency)
            if rate is None:
                logging.error(f"[Currency] No fallback rate for {from_currency}->{to_currency}")
                return None

            logging.warning(
                f"[Currency] Using fallback rate: 1 {from_currency} = {rate} {to_currency}"
            )
            self.rates[key] = (rate, now)
            return rate

        self.rates[key] = (rate, self.clock())
        self.last_fetch_time = self.clock()
        logging.info(f"[Currency] Fetched rate: 1 {from_currency} = {rate} {to_currency}")
        return rate

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float | None:
        """Convert amount, rounded to two decimals."""
        if not amount or amount <= 0:
            return None

        if from_currency == to_currency:
            return amount

        rate = self.get_rate(from_currency, to_currency)
        if rate is None:
            return None
        return round(amount * rate, 2)

    def clear_cache(self) -> None:
        self.rates.clear()
        self.last_fetch_time = None
