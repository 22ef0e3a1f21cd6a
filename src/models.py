import datetime
from dataclasses import dataclass, field
from enum import Enum

PRICE_HISTORY_LIMIT = 10


class Interest(str, Enum):
    BUY = "buy"
    SELL = "sell"
    BOTH = "both"

    @property
    def watches_buy(self) -> bool:
        return self in (Interest.BUY, Interest.BOTH)

    @property
    def watches_sell(self) -> bool:
        return self in (Interest.SELL, Interest.BOTH)


@dataclass
class PricePoint:
    price: float
    timestamp: str


@dataclass
class Recipient:
    id: str
    webhook_url: str = ""


@dataclass
class TrackedItem:
    """One user's watch on one item."""

    item_key: str
    owner_id: str
    interest: Interest = Interest.BUY
    target_down: float | None = None
    target_up: float | None = None
    last_known_price: float | None = None
    image_url: str | None = None
    down_alert_sent: bool = False
    up_alert_sent: bool = False
    last_down_alert_price: float | None = None
    last_up_alert_price: float | None = None
    price_history: list[PricePoint] = field(default_factory=list)
    id: int | None = None

    def record_price(self, price: float, timestamp: str | None = None) -> None:
        """Append a price sample, evicting the oldest beyond the limit."""
        if timestamp is None:
            timestamp = datetime.datetime.now().isoformat()
        self.price_history.append(PricePoint(price, timestamp))
        del self.price_history[:-PRICE_HISTORY_LIMIT]
