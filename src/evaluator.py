"""Threshold crossing state machine for tracked items.

Each direction of an item is either ARMED (no alert outstanding) or ALERTED.
A favorable alert fires when the price is on the target side of a threshold
and the direction is ARMED, or when the price has improved past the price of
the last alert. Unfavorable alerts fire whenever the price crosses back out
and carry no state of their own. Returning to neutral territory re-arms.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from models import TrackedItem

UNSET = object()

StateDelta = dict[str, Any]


class AlertKind(str, Enum):
    BUY = "buy"
    SELL = "sell"
    BUY_BAD = "buy-bad"
    SELL_BAD = "sell-bad"

    @property
    def favorable(self) -> bool:
        return self in (AlertKind.BUY, AlertKind.SELL)


@dataclass
class Alert:
    kind: AlertKind
    item_key: str
    title: str
    message: str
    price: float
    target: float
    previous_price: float | None = None
    interest: str = ""
    image_url: str | None = None
    # Applied to the item only once the alert has been delivered
    delta: StateDelta = field(default_factory=dict)


@dataclass
class Evaluation:
    alerts: list[Alert] = field(default_factory=list)
    # Resets, applied regardless of delivery
    delta: StateDelta = field(default_factory=dict)


def format_number(value: float) -> str:
    """Format a price without a trailing .0 for whole numbers."""
    return f"{value:.0f}" if float(value).is_integer() else f"{value:.2f}"


def buy_alert(item: TrackedItem, price: float, previous: float | None) -> Alert | None:
    """Favorable alert when the price is at or below target_down."""
    target = item.target_down
    if price > target:
        return None

    improved = item.last_down_alert_price is None or price < item.last_down_alert_price
    if item.down_alert_sent and not improved:
        return None

    name, t = item.item_key, format_number(target)
    if previous is None:
        title = f"{name} is below {t}"
        message = f"Current price: {format_number(price)}"
    else:
        if previous <= target and item.down_alert_sent:
            title = f"{name} dropped further below {t}"
        else:
            title = f"{name} dropped below {t}"
        message = f"Price: {format_number(price)} (was {format_number(previous)})"

    return Alert(
        kind=AlertKind.BUY,
        item_key=name,
        title=title,
        message=message,
        price=price,
        target=target,
        previous_price=previous,
        delta={"down_alert_sent": True, "last_down_alert_price": price},
    )


def sell_alert(item: TrackedItem, price: float, previous: float | None) -> Alert | None:
    """Favorable alert when the price is at or above target_up."""
    target = item.target_up
    if price < target:
        return None

    improved = item.last_up_alert_price is None or price > item.last_up_alert_price
    if item.up_alert_sent and not improved:
        return None

    name, t = item.item_key, format_number(target)
    if previous is None:
        title = f"{name} is above {t}"
        message = f"Current price: {format_number(price)}"
    else:
        if previous >= target and item.up_alert_sent:
            title = f"{name} rose further above {t}"
        else:
            title = f"{name} rose above {t}"
        message = f"Price: {format_number(price)} (was {format_number(previous)})"

    return Alert(
        kind=AlertKind.SELL,
        item_key=name,
        title=title,
        message=message,
        price=price,
        target=target,
        previous_price=previous,
        delta={"up_alert_sent": True, "last_up_alert_price": price},
    )


def buy_bad_alert(item: TrackedItem, price: float, previous: float | None) -> Alert | None:
    """Unfavorable alert when the price rises back above target_down."""
    target = item.target_down
    if previous is None or not previous <= target < price:
        return None

    return Alert(
        kind=AlertKind.BUY_BAD,
        item_key=item.item_key,
        title=f"{item.item_key} rose above {format_number(target)}",
        message=(
            f"Price: {format_number(price)} (was {format_number(previous)}) "
            "- Price moving away from buy target"
        ),
        price=price,
        target=target,
        previous_price=previous,
    )


def sell_bad_alert(item: TrackedItem, price: float, previous: float | None) -> Alert | None:
    """Unfavorable alert when the price drops back below target_up."""
    target = item.target_up
    if previous is None or not previous >= target > price:
        return None

    return Alert(
        kind=AlertKind.SELL_BAD,
        item_key=item.item_key,
        title=f"{item.item_key} dropped below {format_number(target)}",
        message=(
            f"Price: {format_number(price)} (was {format_number(previous)}) "
            "- Price moving away from sell target"
        ),
        price=price,
        target=target,
        previous_price=previous,
    )


def reset_delta(item: TrackedItem, price: float) -> StateDelta:
    """Return the changes that re-arm directions back in neutral territory."""
    delta: StateDelta = {}
    reset_down = reset_up = False

    if item.target_down is not None and item.target_up is not None:
        if item.target_down < price < item.target_up:
            reset_down = reset_up = True

    if item.interest.watches_buy and item.target_down is not None:
        if price > item.target_down:
            reset_down = True

    if item.interest.watches_sell and item.target_up is not None:
        if price < item.target_up:
            reset_up = True

    if reset_down and (item.down_alert_sent or item.last_down_alert_price is not None):
        delta.update(down_alert_sent=False, last_down_alert_price=None)
    if reset_up and (item.up_alert_sent or item.last_up_alert_price is not None):
        delta.update(up_alert_sent=False, last_up_alert_price=None)

    return delta


def evaluate(item: TrackedItem, price: float, previous: Any = UNSET) -> Evaluation:
    """Decide which alerts a new price sample fires and how state changes.

    previous defaults to the item's last known price. Nothing on the item is
    modified.
    """
    if previous is UNSET:
        previous = item.last_known_price

    alerts = []

    if item.interest.watches_buy and item.target_down is not None:
        alerts.append(buy_alert(item, price, previous))
        alerts.append(buy_bad_alert(item, price, previous))

    if item.interest.watches_sell and item.target_up is not None:
        alerts.append(sell_alert(item, price, previous))
        alerts.append(sell_bad_alert(item, price, previous))

    interest = item.interest.value.capitalize()
    fired = []
    for alert in alerts:
        if alert is None:
            continue
        alert.interest = interest
        alert.image_url = item.image_url
        fired.append(alert)

    return Evaluation(alerts=fired, delta=reset_delta(item, price))


def apply_delta(item: TrackedItem, delta: StateDelta) -> None:
    """Write a state delta onto an item."""
    for name, value in delta.items():
        setattr(item, name, value)
