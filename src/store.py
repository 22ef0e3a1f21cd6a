import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from config import DATABASE
from errors import Unavailable
from models import Interest, PricePoint, Recipient, TrackedItem

ITEM_COLUMNS = (
    "id",
    "item_key",
    "owner_id",
    "interest",
    "target_down",
    "target_up",
    "last_known_price",
    "image_url",
    "down_alert_sent",
    "up_alert_sent",
    "last_down_alert_price",
    "last_up_alert_price",
    "price_history",
)


def init_database(database: Path) -> None:
    """Initialize database with recipients and tracked_items tables."""
    database.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(database)
    cursor = conn.cursor()

    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS recipients (
            id TEXT PRIMARY KEY,
            webhook_url TEXT NOT NULL
        )
        """
    )
    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS tracked_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            item_key TEXT NOT NULL,
            owner_id TEXT NOT NULL,
            interest TEXT NOT NULL DEFAULT 'buy',
            target_down REAL,
            target_up REAL,
            last_known_price REAL,
            image_url TEXT,
            down_alert_sent INTEGER NOT NULL DEFAULT 0,
            up_alert_sent INTEGER NOT NULL DEFAULT 0,
            last_down_alert_price REAL,
            last_up_alert_price REAL,
            price_history TEXT NOT NULL DEFAULT '[]'
        )
        """
    )

    # Create index for fast lookups
    cursor.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_tracked_items_key
        ON tracked_items(item_key)
        """
    )

    conn.commit()
    conn.close()


def row_to_item(row: tuple) -> TrackedItem:
    """Build a TrackedItem from a tracked_items row."""
    values = dict(zip(ITEM_COLUMNS, row))
    history = [PricePoint(p["price"], p["timestamp"]) for p in json.loads(values["price_history"])]
    return TrackedItem(
        id=values["id"],
        item_key=values["item_key"],
        owner_id=values["owner_id"],
        interest=Interest(values["interest"]),
        target_down=values["target_down"],
        target_up=values["target_up"],
        last_known_price=values["last_known_price"],
        image_url=values["image_url"],
        down_alert_sent=bool(values["down_alert_sent"]),
        up_alert_sent=bool(values["up_alert_sent"]),
        last_down_alert_price=values["last_down_alert_price"],
        last_up_alert_price=values["last_up_alert_price"],
        price_history=history,
    )


def item_to_row(item: TrackedItem) -> tuple:
    """Flatten a TrackedItem into column values, id excluded."""
    history = json.dumps([{"price": p.price, "timestamp": p.timestamp} for p in item.price_history])
    return (
        item.item_key,
        item.owner_id,
        Interest(item.interest).value,
        item.target_down,
        item.target_up,
        item.last_known_price,
        item.image_url,
        int(item.down_alert_sent),
        int(item.up_alert_sent),
        item.last_down_alert_price,
        item.last_up_alert_price,
        history,
    )


class SQLiteStore:
    """Tracked item and recipient storage backed by SQLite."""

    def __init__(self, database: Path = DATABASE):
        self.database = Path(database)
        init_database(self.database)

    @contextmanager
    def cursor(self) -> Iterator[sqlite3.Cursor]:
        try:
            conn = sqlite3.connect(self.database, timeout=10)
        except sqlite3.Error as e:
            raise Unavailable(f"Database unavailable: {e}") from e

        try:
            yield conn.cursor()
            conn.commit()
        except sqlite3.OperationalError as e:
            raise Unavailable(f"Database error: {e}") from e
        finally:
            conn.close()

    def find_all(self) -> list[TrackedItem]:
        with self.cursor() as cursor:
            cursor.execute(f"SELECT {', '.join(ITEM_COLUMNS)} FROM tracked_items ORDER BY id")
            return [row_to_item(row) for row in cursor.fetchall()]

    def find_items_by_identifier(self, item_key: str) -> list[TrackedItem]:
        with self.cursor() as cursor:
            cursor.execute(
                f"SELECT {', '.join(ITEM_COLUMNS)} FROM tracked_items WHERE item_key = ? ORDER BY id",
                (item_key,),
            )
            return [row_to_item(row) for row in cursor.fetchall()]

    def find_recipient(self, owner_id: str) -> Recipient | None:
        with self.cursor() as cursor:
            cursor.execute("SELECT id, webhook_url FROM recipients WHERE id = ?", (owner_id,))
            row = cursor.fetchone()
        if row is None:
            return None
        return Recipient(id=row[0], webhook_url=row[1])

    def save(self, item: TrackedItem) -> TrackedItem:
        """Insert or update an item, filling in its id on insert."""
        with self.cursor() as cursor:
            if item.id is None:
                cursor.execute(
                    f"""
                    INSERT INTO tracked_items ({', '.join(ITEM_COLUMNS[1:])})
                    VALUES ({', '.join('?' * (len(ITEM_COLUMNS) - 1))})
                    """,
                    item_to_row(item),
                )
                item.id = cursor.lastrowid
            else:
                assignments = ", ".join(f"{column} = ?" for column in ITEM_COLUMNS[1:])
                cursor.execute(
                    f"UPDATE tracked_items SET {assignments} WHERE id = ?",
                    (*item_to_row(item), item.id),
                )
        return item

    def add_recipient(self, recipient: Recipient) -> Recipient:
        with self.cursor() as cursor:
            cursor.execute(
                "INSERT OR REPLACE INTO recipients (id, webhook_url) VALUES (?, ?)",
                (recipient.id, recipient.webhook_url),
            )
        return recipient

    def add_item(self, item: TrackedItem) -> TrackedItem:
        """Create a tracked item for an existing recipient."""
        if self.find_recipient(item.owner_id) is None:
            raise ValueError(f"Recipient {item.owner_id} does not exist")
        item.id = None
        return self.save(item)
