import datetime
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Never, Protocol

from errors import AuthError, DispatchFailure
from evaluator import AlertKind, apply_delta, evaluate
from models import Recipient, TrackedItem
from notifier import WebhookNotifier
from price_provider import PriceProvider


class Store(Protocol):
    def find_all(self) -> list[TrackedItem]: ...

    def find_items_by_identifier(self, item_key: str) -> list[TrackedItem]: ...

    def find_recipient(self, owner_id: str) -> Recipient | None: ...

    def save(self, item: TrackedItem) -> TrackedItem: ...


@dataclass
class CycleStats:
    items: int = 0
    identifiers: int = 0
    priced: int = 0
    alerts_sent: int = 0
    alerts_failed: int = 0
    items_failed: int = 0


class Scheduler:
    """Runs price check cycles on a fixed interval, never overlapping."""

    def __init__(
        self,
        store: Store,
        price_provider: PriceProvider,
        notifier: WebhookNotifier,
        interval_minutes: float = 5,
        image_lookup: Callable[[str], str | None] | None = None,
        reload_settings: bool = True,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.price_provider = price_provider
        self.notifier = notifier
        self.interval_minutes = interval_minutes
        self.image_lookup = image_lookup
        self.reload_settings = reload_settings
        self.clock = clock
        self.sleep = sleep

        self._running = threading.Lock()
        self._images: dict[str, str | None] = {}

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    def run_cycle(self) -> CycleStats | None:
        """Run one cycle, or return None if another one is in flight or it failed."""
        if not self._running.acquire(blocking=False):
            logging.warning("Previous price check still running, skipping this tick")
            return None

        try:
            return self._run_cycle()
        except Exception as e:
            logging.error(f"Price check failed: {e}")
            return None
        finally:
            self._running.release()

    def _run_cycle(self) -> CycleStats:
        logging.info("Running price check...")
        start_time = time.time()

        if self.reload_settings:
            try:
                self.price_provider.reload()
                self.notifier.apply_settings(self.price_provider.settings)
            except Exception as e:
                logging.error(f"Failed to reload settings, keeping previous ones: {e}")

        items = self.store.find_all()
        stats = CycleStats(items=len(items))

        # Deduplicate so each item is fetched once per cycle
        item_keys = list(dict.fromkeys(item.item_key for item in items))
        stats.identifiers = len(item_keys)

        prices = {}
        for item_key in item_keys:
            prices[item_key] = self.fetch_price(item_key)
            if prices[item_key] is not None:
                stats.priced += 1

        for item in items:
            price = prices.get(item.item_key)
            if price is None:
                continue
            try:
                self.process_item(item, price, stats)
            except Exception as e:
                stats.items_failed += 1
                logging.error(f"Failed to process tracker for {item.item_key} (id {item.id}): {e}")

        elapsed = time.time() - start_time
        logging.info(
            f"Price check finished in {elapsed:.1f}s: {stats.items} trackers, "
            f"{stats.priced}/{stats.identifiers} items priced, {stats.alerts_sent} alerts sent, "
            f"{stats.alerts_failed} alerts failed, {stats.items_failed} trackers failed"
        )
        return stats

    def fetch_price(self, item_key: str) -> float | None:
        """Fetch a price for the cycle, treating any failure as no price."""
        try:
            price = self.price_provider.get_price(item_key)
        except AuthError as e:
            logging.error(f"Provider credentials rejected while pricing {item_key}: {e}")
            return None
        except Exception as e:
            logging.error(f"Failed to get price for {item_key}: {e}")
            return None

        if price is None:
            logging.info(f"No price found for {item_key}")
        return price

    def process_item(self, item: TrackedItem, price: float, stats: CycleStats) -> None:
        """Evaluate one tracker against a new price, alert and save it."""
        recipient = self.store.find_recipient(item.owner_id)
        if recipient is None:
            logging.warning(
                f"Skipping tracker {item.id} ({item.item_key}): recipient {item.owner_id} not found"
            )
            return

        evaluation = evaluate(item, price)
        keep_previous_price = False

        for alert in evaluation.alerts:
            try:
                self.notifier.send(recipient, alert)
            except DispatchFailure as e:
                stats.alerts_failed += 1
                logging.error(
                    f"Failed to send {alert.kind.value} alert for {item.item_key} "
                    f"to recipient {recipient.id}: {e}"
                )
                # Keep the crossing visible so the next cycle sends it again
                if alert.kind in (AlertKind.BUY_BAD, AlertKind.SELL_BAD):
                    keep_previous_price = True
                continue

            stats.alerts_sent += 1
            apply_delta(item, alert.delta)

        apply_delta(item, evaluation.delta)

        if not keep_previous_price:
            item.last_known_price = price
        item.record_price(price, datetime.datetime.now().isoformat())

        if item.image_url is None:
            item.image_url = self.lookup_image(item.item_key)

        self.store.save(item)

    def lookup_image(self, item_key: str) -> str | None:
        """Look up an item image, at most once per item per process."""
        if self.image_lookup is None:
            return None
        if item_key not in self._images:
            try:
                self._images[item_key] = self.image_lookup(item_key)
            except Exception as e:
                logging.warning(f"Image lookup failed for {item_key}: {e}")
                self._images[item_key] = None
        return self._images[item_key]

    def tick(self) -> threading.Thread:
        """Start a cycle on a worker thread."""
        worker = threading.Thread(target=self.run_cycle, name="price-check", daemon=True)
        worker.start()
        return worker

    def run_forever(self) -> Never:
        """Run a cycle now, then one every interval_minutes."""
        interval = self.interval_minutes * 60
        logging.info(f"Starting scheduler (check interval: {self.interval_minutes} min)")

        next_tick = self.clock()
        while True:
            self.tick()

            next_tick += interval
            sleep_time = max(0, next_tick - self.clock())
            next_time = datetime.datetime.now() + datetime.timedelta(seconds=sleep_time)
            logging.info(f"Next price check at {next_time.strftime('%H:%M:%S')}")
            self.sleep(sleep_time)
