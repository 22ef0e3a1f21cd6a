from __future__ import annotations

import pytest

from config import Settings
from errors import AuthError, RateLimited, Transient
from price_provider import PriceProvider, provider_order
from providers import SteamMarketClient


class FakeProvider:
    def __init__(self, currency="INR", *outcomes, configured=True):
        self._currency = currency
        self.outcomes = list(outcomes)
        self.configured = configured
        self.calls = []
        self.applied = []

    @property
    def currency(self):
        return self._currency

    def is_configured(self):
        return self.configured

    def apply_settings(self, settings):
        self.applied.append(settings)

    def fetch_price(self, item_key):
        self.calls.append(item_key)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeConverter:
    def __init__(self, rate=83.0):
        self.rate = rate
        self.fallback_rate = 83.5
        self.conversions = []

    def convert(self, amount, from_currency, to_currency):
        self.conversions.append((amount, from_currency, to_currency))
        if self.rate is None:
            return None
        return round(amount * self.rate, 2)


def make_provider(settings, steam, skinport, **kwargs):
    return PriceProvider(
        settings,
        {"steam": steam, "skinport": skinport},
        FakeConverter(),
        settings_loader=kwargs.pop("settings_loader", lambda: settings),
    )


@pytest.mark.parametrize("settings_kwargs,configured,expected", [
    ({}, True, ["steam", "skinport"]),
    ({}, False, ["steam"]),
    ({"use_price_fallback": False}, True, ["steam"]),
    ({"price_provider": "skinport"}, True, ["skinport", "steam"]),
    ({"price_provider": "skinport"}, False, ["steam"]),
    ({"price_provider": "skinport", "use_price_fallback": False}, True, ["skinport"]),
    ({"price_provider": "skinport", "use_price_fallback": False}, False, []),
    ({"price_provider": "both", "use_price_fallback": False}, True, ["skinport", "steam"]),
    ({"price_provider": "both"}, False, ["steam"]),
])
def test_provider_order(settings_kwargs, configured, expected):
    providers = {"steam": FakeProvider(), "skinport": FakeProvider("USD", configured=configured)}
    assert provider_order(Settings(**settings_kwargs), providers) == expected


def test_first_positive_price_wins():
    steam = FakeProvider("INR", 1500.0)
    skinport = FakeProvider("USD", 20.0)
    provider = make_provider(Settings(), steam, skinport)

    assert provider.get_price("Item") == 1500.0
    assert skinport.calls == []


@pytest.mark.parametrize("first", [None, 0, -3.0])
def test_falls_through_on_missing_price(first):
    steam = FakeProvider("INR", first)
    skinport = FakeProvider("USD", 20.0)
    provider = make_provider(Settings(), steam, skinport)

    assert provider.get_price("Item") == 1660.0
    assert provider.converter.conversions == [(20.0, "USD", "INR")]


def test_falls_through_on_error():
    steam = FakeProvider("INR", RateLimited("429"))
    skinport = FakeProvider("USD", 10.0)
    provider = make_provider(Settings(), steam, skinport)

    assert provider.get_price("Item") == 830.0


def test_last_provider_error_is_raised():
    steam = FakeProvider("INR", Transient("first"))
    skinport = FakeProvider("USD", Transient("second"))
    provider = make_provider(Settings(), steam, skinport)

    with pytest.raises(Transient, match="second"):
        provider.get_price("Item")


def test_earlier_error_raised_when_rest_have_no_price():
    steam = FakeProvider("INR", Transient("steam down"))
    skinport = FakeProvider("USD", None)
    provider = make_provider(Settings(), steam, skinport)

    with pytest.raises(Transient, match="steam down"):
        provider.get_price("Item")


def test_none_when_all_providers_have_no_price():
    steam = FakeProvider("INR", None)
    skinport = FakeProvider("USD", None)
    provider = make_provider(Settings(), steam, skinport)

    assert provider.get_price("Item") is None


def test_no_providers_configured_is_none():
    settings = Settings(price_provider="skinport", use_price_fallback=False)
    provider = make_provider(settings, FakeProvider(), FakeProvider("USD", configured=False))
    assert provider.get_price("Item") is None


def test_same_currency_is_not_converted():
    settings = Settings(price_provider="skinport", use_price_fallback=False)
    steam = FakeProvider("USD")
    skinport = FakeProvider("USD", 12.5)
    provider = make_provider(settings, steam, skinport)

    assert provider.get_price("Item") == 12.5
    assert provider.converter.conversions == []


def test_auth_error_on_last_provider_disables_it():
    settings = Settings(price_provider="skinport", use_price_fallback=False, skinport_api_key="old")
    skinport = FakeProvider("USD", AuthError("rejected"))
    provider = make_provider(settings, FakeProvider(), skinport)

    with pytest.raises(AuthError):
        provider.get_price("Item")
    assert provider.disabled == {"skinport"}
    assert provider.get_price("Item") is None
    assert len(skinport.calls) == 1

    # Unchanged credentials keep it disabled
    provider.reload(settings)
    assert provider.disabled == {"skinport"}

    provider.reload(Settings(price_provider="skinport", use_price_fallback=False, skinport_api_key="new"))
    assert provider.disabled == set()

    skinport.outcomes.append(9.0)
    assert provider.get_price("Item") == 747.0


def test_auth_error_with_fallback_does_not_disable():
    settings = Settings(price_provider="skinport", skinport_api_key="k")
    skinport = FakeProvider("USD", AuthError("rejected"))
    steam = FakeProvider("INR", 700.0)
    provider = make_provider(settings, steam, skinport)

    assert provider.get_price("Item") == 700.0
    assert provider.disabled == set()


def test_reload_reads_settings_each_time():
    loaded = Settings(price_provider="skinport", skinport_api_key="k", fallback_exchange_rate=90.0)
    steam = FakeProvider("INR", 100.0)
    skinport = FakeProvider("USD", 2.0)
    provider = make_provider(Settings(), steam, skinport, settings_loader=lambda: loaded)

    provider.reload()

    assert provider.settings is loaded
    assert steam.applied == [loaded]
    assert skinport.applied == [loaded]
    assert provider.converter.fallback_rate == 90.0
    assert provider.get_price("Item") == 166.0


def test_steam_access_denied_does_not_disable_it(clock, session_factory, make_response):
    session = session_factory(
        make_response(status_code=403),
        make_response(json_data={"lowest_price": "₹ 100.00"}),
    )
    steam = SteamMarketClient(session=session, clock=clock, sleep=clock.sleep, max_attempts=1)
    settings = Settings(use_price_fallback=False)
    provider = PriceProvider(settings, {"steam": steam}, FakeConverter(), settings_loader=lambda: settings)

    with pytest.raises(Transient):
        provider.get_price("Item")
    assert provider.disabled == set()

    provider.reload()
    assert provider.get_price("Item") == 100.0


def test_any_settings_change_reenables_disabled_provider():
    settings = Settings(price_provider="skinport", use_price_fallback=False, skinport_api_key="k")
    skinport = FakeProvider("USD", AuthError("rejected"), 2.0)
    provider = make_provider(settings, FakeProvider(), skinport)

    with pytest.raises(AuthError):
        provider.get_price("Item")

    provider.reload(Settings(
        price_provider="skinport", use_price_fallback=False, skinport_api_key="k", user_agent="changed"
    ))
    assert provider.disabled == set()
    assert provider.get_price("Item") == 166.0


def test_unconvertible_price_falls_through():
    settings = Settings(price_provider="skinport", skinport_api_key="k")
    skinport = FakeProvider("USD", 20.0)
    steam = FakeProvider("INR", 1700.0)
    provider = make_provider(settings, steam, skinport)
    provider.converter.rate = None

    assert provider.get_price("Item") == 1700.0
