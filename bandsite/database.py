"""
Hope & Failure Band Site - SQLite Database

Embedded SQLite storage for the five content resources (inventory, events,
videos, bio, lyrics) plus the table of processed Stripe orders.  Uses
aiosqlite for async operations within FastAPI and plain sqlite3 for the
startup helpers (schema, migrations, seeding).

List and dict valued columns (sizes, per-size stock, bio paragraphs, photo
credits) are stored as JSON text and decoded by :func:`row_to_dict`.
"""

import sqlite3
from contextlib import asynccontextmanager, contextmanager
from typing import Any, Dict, List, Optional

import aiosqlite
from loguru import logger

from bandsite.config import DB_PATH, ONE_SIZE
from bandsite.utils import dump_json, is_past_date, parse_json_field

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS inventory (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    price REAL NOT NULL DEFAULT 0,
    sizes TEXT DEFAULT '[]',
    inventory TEXT DEFAULT '{}',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    date TEXT NOT NULL,
    time TEXT DEFAULT '',
    venue TEXT NOT NULL,
    location TEXT NOT NULL,
    description TEXT DEFAULT '',
    ticket_link TEXT DEFAULT '',
    is_past INTEGER DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_events_date ON events(date);

CREATE TABLE IF NOT EXISTS videos (
    id TEXT PRIMARY KEY,
    youtube_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    sort_order INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS bio (
    id TEXT PRIMARY KEY,
    main_text TEXT DEFAULT '[]',
    band_image TEXT DEFAULT '',
    past_members TEXT DEFAULT '[]',
    photography TEXT DEFAULT '[]',
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS lyrics (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    lyrics TEXT DEFAULT '',
    sort_order INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS orders (
    session_id TEXT PRIMARY KEY,
    customer_email TEXT DEFAULT '',
    total REAL DEFAULT 0,
    data TEXT DEFAULT '{}',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TRIGGER IF NOT EXISTS update_inventory_timestamp
    AFTER UPDATE ON inventory
    FOR EACH ROW
BEGIN
    UPDATE inventory SET updated_at = CURRENT_TIMESTAMP WHERE id = OLD.id;
END;

CREATE TRIGGER IF NOT EXISTS update_events_timestamp
    AFTER UPDATE ON events
    FOR EACH ROW
BEGIN
    UPDATE events SET updated_at = CURRENT_TIMESTAMP WHERE id = OLD.id;
END;

CREATE TRIGGER IF NOT EXISTS update_videos_timestamp
    AFTER UPDATE ON videos
    FOR EACH ROW
BEGIN
    UPDATE videos SET updated_at = CURRENT_TIMESTAMP WHERE id = OLD.id;
END;

CREATE TRIGGER IF NOT EXISTS update_lyrics_timestamp
    AFTER UPDATE ON lyrics
    FOR EACH ROW
BEGIN
    UPDATE lyrics SET updated_at = CURRENT_TIMESTAMP WHERE id = OLD.id;
END;
"""

# ---------------------------------------------------------------------------
# Migration helpers
# ---------------------------------------------------------------------------
_MIGRATIONS = [
    # Migration 1: instrumental flag for songs without words
    {
        "check": "SELECT COUNT(*) FROM pragma_table_info('lyrics') WHERE name='is_instrumental'",
        "apply": [
            "ALTER TABLE lyrics ADD COLUMN is_instrumental INTEGER DEFAULT 0",
            "UPDATE lyrics SET is_instrumental = 1 WHERE lyrics = '' OR lyrics IS NULL",
        ],
        "description": "Add lyrics.is_instrumental column",
    },
]

# Columns holding JSON text, with the value used when decoding fails
_JSON_COLUMNS: Dict[str, Any] = {
    "sizes": [],
    "inventory": {},
    "main_text": [],
    "past_members": [],
    "photography": [],
    "data": {},
}
_BOOL_COLUMNS = {"is_past", "is_instrumental"}

_EVENT_FIELDS = {
    "title",
    "date",
    "time",
    "venue",
    "location",
    "description",
    "ticket_link",
}
_VIDEO_FIELDS = {"youtube_id", "title", "description", "order"}
_SONG_FIELDS = {"title", "lyrics", "order", "is_instrumental"}
_BIO_FIELDS = {"main_text", "band_image", "past_members", "photography"}

_COUNTABLE_TABLES = {"inventory", "events", "videos", "lyrics", "orders"}


def _run_migrations(conn: sqlite3.Connection) -> None:
    """Run any pending schema migrations."""
    for migration in _MIGRATIONS:
        cursor = conn.execute(str(migration["check"]))
        (count,) = cursor.fetchone()
        if count == 0:
            logger.info("🔄 Running migration: {}", migration["description"])
            for stmt in migration["apply"]:
                conn.execute(stmt)
            conn.commit()
            logger.success("✅ Migration applied: {}", migration["description"])


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------
def init_db() -> None:
    """Initialize the SQLite database, create tables, and run migrations."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    try:
        with sqlite3.connect(str(DB_PATH)) as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
            _run_migrations(conn)
        logger.success(f"✅ Database initialized at {DB_PATH}")
    except Exception as e:
        logger.critical(f"❌ Failed to initialize database: {e}")
        raise


# ---------------------------------------------------------------------------
# Async context manager (for use in FastAPI routes)
# ---------------------------------------------------------------------------
@asynccontextmanager
async def get_async_connection():
    """Async context manager for an aiosqlite connection with row factory."""
    db = await aiosqlite.connect(str(DB_PATH))
    db.row_factory = aiosqlite.Row
    try:
        yield db
    finally:
        await db.close()


# ---------------------------------------------------------------------------
# Sync context manager (for startup helpers)
# ---------------------------------------------------------------------------
@contextmanager
def get_connection():
    """Synchronous context manager for a sqlite3 connection with row factory."""
    conn = sqlite3.connect(str(DB_PATH))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Helper: convert sqlite3.Row / aiosqlite.Row to plain dict
# ---------------------------------------------------------------------------
def row_to_dict(row) -> Dict[str, Any]:
    """
    Convert a database row to a plain dictionary.

    JSON columns are decoded, integer flags become booleans and the
    ``sort_order`` column is exposed as ``order``.
    """
    if row is None:
        return {}
    data = dict(row)
    for column, default in _JSON_COLUMNS.items():
        if column in data:
            data[column] = parse_json_field(data[column], default)
    for column in _BOOL_COLUMNS:
        if column in data:
            data[column] = bool(data[column])
    if "sort_order" in data:
        data["order"] = data.pop("sort_order")
    data.pop("created_at", None)
    data.pop("updated_at", None)
    return data


async def ping() -> bool:
    """Return True if the database answers a trivial query."""
    try:
        async with get_async_connection() as db:
            cursor = await db.execute("SELECT 1")
            await cursor.fetchone()
        return True
    except Exception as e:
        logger.error("❌ Database ping failed: {}", e)
        return False


async def count_rows(table: str) -> int:
    """Return the number of rows in one of the content tables."""
    if table not in _COUNTABLE_TABLES:
        raise ValueError(f"Unknown table: {table}")
    async with get_async_connection() as db:
        cursor = await db.execute(f"SELECT COUNT(*) AS total FROM {table}")
        row = await cursor.fetchone()
        return row["total"] if row else 0


async def _next_id(db: aiosqlite.Connection, table: str) -> str:
    """Return the next numeric string id for *table*."""
    cursor = await db.execute(
        f"SELECT MAX(CAST(id AS INTEGER)) AS max_id FROM {table}"
    )
    row = await cursor.fetchone()
    max_id = row["max_id"] if row and row["max_id"] is not None else 0
    return str(int(max_id) + 1)


async def _next_order(db: aiosqlite.Connection, table: str) -> int:
    cursor = await db.execute(f"SELECT MAX(sort_order) AS max_order FROM {table}")
    row = await cursor.fetchone()
    max_order = row["max_order"] if row and row["max_order"] is not None else 0
    return int(max_order) + 1


async def _fetch_one(db: aiosqlite.Connection, table: str, record_id: str):
    cursor = await db.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,))
    return await cursor.fetchone()


async def _update_fields(
    table: str, record_id: str, columns: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    """Apply a column update and return the fresh row, or None if missing."""
    async with get_async_connection() as db:
        if not await _fetch_one(db, table, record_id):
            return None
        if columns:
            set_clause = ", ".join(f"{k} = ?" for k in columns)
            values = list(columns.values()) + [record_id]
            await db.execute(
                f"UPDATE {table} SET {set_clause} WHERE id = ?",
                values,
            )
            await db.commit()
        return row_to_dict(await _fetch_one(db, table, record_id))


async def _delete(table: str, record_id: str) -> Optional[Dict[str, Any]]:
    """Delete a row by id and return it, or None if it did not exist."""
    async with get_async_connection() as db:
        row = await _fetch_one(db, table, record_id)
        if not row:
            logger.warning(f"⚠️ {table} id={record_id} not found for deletion")
            return None
        await db.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
        await db.commit()
        logger.info(f"🗑️ {table} id={record_id} deleted")
        return row_to_dict(row)


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
async def get_inventory() -> Dict[str, Dict[str, Any]]:
    """Return every merch item keyed by product id."""
    async with get_async_connection() as db:
        cursor = await db.execute("SELECT * FROM inventory ORDER BY id")
        rows = await cursor.fetchall()
        return {row["id"]: row_to_dict(row) for row in rows}


async def get_inventory_item(product_id: str) -> Optional[Dict[str, Any]]:
    async with get_async_connection() as db:
        row = await _fetch_one(db, "inventory", product_id)
        return row_to_dict(row) if row else None


async def update_inventory(product_id: str, size: str, quantity: int) -> bool:
    """Set the stock level for one size of a product. False if unknown."""
    async with get_async_connection() as db:
        row = await _fetch_one(db, "inventory", product_id)
        if not row or not size:
            return False
        stock = parse_json_field(row["inventory"], {})
        stock[size] = max(0, int(quantity))
        await db.execute(
            "UPDATE inventory SET inventory = ? WHERE id = ?",
            (dump_json(stock), product_id),
        )
        await db.commit()
        logger.info(f"🔧 Inventory set: {product_id} ({size}) = {stock[size]}")
        return True


async def _decrement_stock(
    db: aiosqlite.Connection, product_id: str, size: str, quantity: int
) -> Optional[Dict[str, Any]]:
    """Apply one stock decrement on *db*; the caller owns the transaction."""
    row = await _fetch_one(db, "inventory", product_id)
    if not row:
        logger.warning(f"⚠️ Cannot decrement unknown product: {product_id}")
        return None

    stock = parse_json_field(row["inventory"], {})
    current = int(stock.get(size, 0) or 0)
    new_stock = max(0, current - int(quantity))
    stock[size] = new_stock

    await db.execute(
        "UPDATE inventory SET inventory = ? WHERE id = ?",
        (dump_json(stock), product_id),
    )
    return {
        "productId": product_id,
        "size": size,
        "previousStock": current,
        "newStock": new_stock,
        "decremented": quantity,
    }


async def decrement_inventory(
    product_id: str, size: Optional[str], quantity: int
) -> Optional[Dict[str, Any]]:
    """
    Reduce the stock of one size by *quantity*, clamping at zero.

    Returns a summary of the change, or None if the product does not exist.
    The read and the write happen inside one IMMEDIATE transaction so two
    concurrent purchases cannot both read the same starting stock.
    """
    size = size or ONE_SIZE
    async with get_async_connection() as db:
        await db.execute("BEGIN IMMEDIATE")
        result = await _decrement_stock(db, product_id, size, quantity)
        if result is None:
            await db.rollback()
            return None
        await db.commit()

    logger.info(
        f"📦 Inventory decremented: {product_id} ({size}): "
        f"{result['previousStock']} → {result['newStock']} (-{quantity})"
    )
    return result


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
async def get_events() -> List[Dict[str, Any]]:
    """Fetch all events, newest first, with ``is_past`` refreshed for today."""
    async with get_async_connection() as db:
        cursor = await db.execute("SELECT * FROM events ORDER BY date DESC, id DESC")
        rows = await cursor.fetchall()
    events = [row_to_dict(r) for r in rows]
    for event in events:
        event["is_past"] = is_past_date(event.get("date", ""))
    return events


async def get_event(event_id: str) -> Optional[Dict[str, Any]]:
    async with get_async_connection() as db:
        row = await _fetch_one(db, "events", event_id)
    if not row:
        return None
    event = row_to_dict(row)
    event["is_past"] = is_past_date(event.get("date", ""))
    return event


async def add_event(data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert an event and return it; ``is_past`` is derived from the date."""
    async with get_async_connection() as db:
        event_id = await _next_id(db, "events")
        await db.execute(
            """
            INSERT INTO events (id, title, date, time, venue, location,
                                description, ticket_link, is_past)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event_id,
                data["title"],
                data["date"],
                data.get("time") or "",
                data["venue"],
                data["location"],
                data.get("description") or "",
                data.get("ticket_link") or "",
                int(is_past_date(data["date"])),
            ),
        )
        await db.commit()
        event = row_to_dict(await _fetch_one(db, "events", event_id))
    logger.success(f"📅 Event added (id={event_id}): {event['title']}")
    return event


async def update_event(event_id: str, **fields) -> Optional[Dict[str, Any]]:
    """Update an event; ``is_past`` follows the resulting date."""
    columns = {k: v for k, v in fields.items() if k in _EVENT_FIELDS}
    current = await get_event(event_id)
    if not current:
        return None
    new_date = columns.get("date", current["date"])
    columns["is_past"] = int(is_past_date(new_date))
    event = await _update_fields("events", event_id, columns)
    if event:
        logger.info(f"✏️ Event id={event_id} updated: {sorted(columns)}")
    return event


async def delete_event(event_id: str) -> Optional[Dict[str, Any]]:
    return await _delete("events", event_id)


# ---------------------------------------------------------------------------
# Videos
# ---------------------------------------------------------------------------
async def get_videos() -> List[Dict[str, Any]]:
    async with get_async_connection() as db:
        cursor = await db.execute("SELECT * FROM videos ORDER BY sort_order ASC, id")
        rows = await cursor.fetchall()
        return [row_to_dict(r) for r in rows]


async def get_video(video_id: str) -> Optional[Dict[str, Any]]:
    async with get_async_connection() as db:
        row = await _fetch_one(db, "videos", video_id)
        return row_to_dict(row) if row else None


async def add_video(data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert a video; without an explicit order it goes to the end."""
    async with get_async_connection() as db:
        video_id = await _next_id(db, "videos")
        order = data.get("order")
        if order is None:
            order = await _next_order(db, "videos")
        await db.execute(
            """
            INSERT INTO videos (id, youtube_id, title, description, sort_order)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                video_id,
                data["youtube_id"],
                data["title"],
                data.get("description") or "",
                order,
            ),
        )
        await db.commit()
        video = row_to_dict(await _fetch_one(db, "videos", video_id))
    logger.success(f"📹 Video added (id={video_id}): {video['title']}")
    return video


async def update_video(video_id: str, **fields) -> Optional[Dict[str, Any]]:
    columns = {k: v for k, v in fields.items() if k in _VIDEO_FIELDS}
    if "order" in columns:
        columns["sort_order"] = columns.pop("order")
    video = await _update_fields("videos", video_id, columns)
    if video:
        logger.info(f"✏️ Video id={video_id} updated: {sorted(columns)}")
    return video


async def delete_video(video_id: str) -> Optional[Dict[str, Any]]:
    return await _delete("videos", video_id)


# ---------------------------------------------------------------------------
# Bio (single row, id "1")
# ---------------------------------------------------------------------------
BIO_ID = "1"


async def get_bio() -> Dict[str, Any]:
    """Return the stored bio, or the default bio if none was saved."""
    async with get_async_connection() as db:
        row = await _fetch_one(db, "bio", BIO_ID)
    if row:
        return row_to_dict(row)

    from bandsite.seed import DEFAULT_BIO

    return {"id": BIO_ID, **DEFAULT_BIO}


async def update_bio(**fields) -> Dict[str, Any]:
    """Upsert the bio row with the given fields and return the result."""
    columns = {
        k: (dump_json(v) if isinstance(v, (list, dict)) else v)
        for k, v in fields.items()
        if k in _BIO_FIELDS
    }
    current = await get_bio()
    merged = {
        "main_text": dump_json(current.get("main_text", [])),
        "band_image": current.get("band_image", ""),
        "past_members": dump_json(current.get("past_members", [])),
        "photography": dump_json(current.get("photography", [])),
    }
    merged.update(columns)

    async with get_async_connection() as db:
        await db.execute(
            """
            INSERT INTO bio (id, main_text, band_image, past_members, photography)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                main_text = excluded.main_text,
                band_image = excluded.band_image,
                past_members = excluded.past_members,
                photography = excluded.photography,
                updated_at = CURRENT_TIMESTAMP
            """,
            (
                BIO_ID,
                merged["main_text"],
                merged["band_image"],
                merged["past_members"],
                merged["photography"],
            ),
        )
        await db.commit()
        bio = row_to_dict(await _fetch_one(db, "bio", BIO_ID))
    logger.info(f"👥 Bio updated: {sorted(columns)}")
    return bio


# ---------------------------------------------------------------------------
# Lyrics
# ---------------------------------------------------------------------------
async def get_songs() -> List[Dict[str, Any]]:
    async with get_async_connection() as db:
        cursor = await db.execute("SELECT * FROM lyrics ORDER BY sort_order ASC, id")
        rows = await cursor.fetchall()
        return [row_to_dict(r) for r in rows]


async def get_song(song_id: str) -> Optional[Dict[str, Any]]:
    async with get_async_connection() as db:
        row = await _fetch_one(db, "lyrics", song_id)
        return row_to_dict(row) if row else None


async def add_song(data: Dict[str, Any]) -> Dict[str, Any]:
    async with get_async_connection() as db:
        song_id = await _next_id(db, "lyrics")
        order = data.get("order")
        if order is None:
            order = await _next_order(db, "lyrics")
        await db.execute(
            """
            INSERT INTO lyrics (id, title, lyrics, sort_order, is_instrumental)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                song_id,
                data["title"],
                data.get("lyrics") or "",
                order,
                int(bool(data.get("is_instrumental", False))),
            ),
        )
        await db.commit()
        song = row_to_dict(await _fetch_one(db, "lyrics", song_id))
    logger.success(f"🎵 Song added (id={song_id}): {song['title']}")
    return song


async def update_song(song_id: str, **fields) -> Optional[Dict[str, Any]]:
    columns = {k: v for k, v in fields.items() if k in _SONG_FIELDS}
    if "order" in columns:
        columns["sort_order"] = columns.pop("order")
    if "is_instrumental" in columns:
        columns["is_instrumental"] = int(bool(columns["is_instrumental"]))
    song = await _update_fields("lyrics", song_id, columns)
    if song:
        logger.info(f"✏️ Song id={song_id} updated: {sorted(columns)}")
    return song


async def delete_song(song_id: str) -> Optional[Dict[str, Any]]:
    return await _delete("lyrics", song_id)


# ---------------------------------------------------------------------------
# Orders (processed Stripe checkout sessions)
# ---------------------------------------------------------------------------
async def get_order(session_id: str) -> Optional[Dict[str, Any]]:
    """Return the stored order data for a checkout session, if processed."""
    async with get_async_connection() as db:
        cursor = await db.execute(
            "SELECT data FROM orders WHERE session_id = ?", (session_id,)
        )
        row = await cursor.fetchone()
        return parse_json_field(row["data"], {}) if row else None


async def fulfil_order(order: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    """
    Record a processed order and take its items out of stock.

    The order row and every stock decrement are written in one IMMEDIATE
    transaction: either the session is marked processed with its stock
    removed, or nothing changes and a retry can run it again.  Returns the
    stock changes, or None if the session was already recorded.
    """
    async with get_async_connection() as db:
        await db.execute("BEGIN IMMEDIATE")
        try:
            cursor = await db.execute(
                """
                INSERT OR IGNORE INTO orders (session_id, customer_email, total, data)
                VALUES (?, ?, ?, ?)
                """,
                (
                    order["stripeSessionId"],
                    order.get("customerEmail") or "",
                    order.get("total") or 0,
                    dump_json(order),
                ),
            )
            if cursor.rowcount == 0:
                await db.rollback()
                return None

            results = []
            for item in order.get("items", []):
                result = await _decrement_stock(
                    db, item["id"], item.get("size") or ONE_SIZE, item["quantity"]
                )
                if result:
                    results.append(result)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    for result in results:
        logger.info(
            f"📦 Inventory decremented: {result['productId']} ({result['size']}): "
            f"{result['previousStock']} → {result['newStock']} (-{result['decremented']})"
        )
    return results
