import sqlite3
from datetime import datetime, timezone

# Ledgers live only in process memory; every Warehouse gets its own database.
DEFAULT_DB_PATH = ":memory:"

MOVEMENT_KINDS = {
    "receive",
    "put",
    "overfill",
    "blowout",
    "ship",
    "overflow_to_blowout",
}
# Movements that bring new units into the building.
INBOUND_KINDS = ("receive", "put", "overfill", "blowout")


def _utc_now():
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def get_connection(path=DEFAULT_DB_PATH):
    connection = sqlite3.connect(path, check_same_thread=False)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys=ON")
    return connection


def init_db(connection):
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS locations (
            id INTEGER PRIMARY KEY,
            row TEXT NOT NULL,
            bay INTEGER NOT NULL,
            side TEXT NOT NULL,
            location_code TEXT NOT NULL UNIQUE,
            capacity INTEGER NOT NULL DEFAULT 0,
            UNIQUE (row, bay, side)
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS items (
            id INTEGER PRIMARY KEY,
            isbn TEXT NOT NULL UNIQUE,
            created_at TEXT NOT NULL
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS stock_levels (
            item_id INTEGER NOT NULL REFERENCES items(id),
            location_id INTEGER NOT NULL REFERENCES locations(id),
            level INTEGER NOT NULL CHECK (level BETWEEN 1 AND 4),
            quantity INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0),
            PRIMARY KEY (item_id, location_id, level)
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS blowout_levels (
            item_id INTEGER NOT NULL REFERENCES items(id),
            location_id INTEGER NOT NULL REFERENCES locations(id),
            quantity INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0),
            PRIMARY KEY (item_id, location_id)
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS global_overflow (
            item_id INTEGER PRIMARY KEY REFERENCES items(id),
            quantity INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0)
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS movements (
            id INTEGER PRIMARY KEY,
            item_id INTEGER NOT NULL REFERENCES items(id),
            kind TEXT NOT NULL,
            quantity INTEGER NOT NULL CHECK (quantity >= 0),
            location_id INTEGER,
            level INTEGER,
            created_at TEXT NOT NULL
        )
        """
    )
    connection.execute(
        "CREATE INDEX IF NOT EXISTS idx_stock_levels_location ON stock_levels(location_id, level)"
    )
    connection.commit()


def seed_locations(connection, locations):
    connection.executemany(
        """
        INSERT OR IGNORE INTO locations (id, row, bay, side, location_code, capacity)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        [
            (
                loc["location_id"],
                loc["row"],
                loc["bay"],
                loc["side"],
                loc["location_code"],
                loc["capacity"],
            )
            for loc in locations
        ],
    )
    connection.commit()


# --- Items ---


def get_item_by_isbn(connection, isbn):
    row = connection.execute(
        "SELECT id, isbn, created_at FROM items WHERE isbn = ?", (isbn,)
    ).fetchone()
    return dict(row) if row else None


def get_or_create_item(connection, isbn):
    item = get_item_by_isbn(connection, isbn)
    if item:
        return item
    connection.execute(
        "INSERT INTO items (isbn, created_at) VALUES (?, ?)", (isbn, _utc_now())
    )
    return get_item_by_isbn(connection, isbn)


def list_items(connection):
    rows = connection.execute("SELECT id, isbn, created_at FROM items ORDER BY isbn").fetchall()
    return [dict(row) for row in rows]


# --- Stock (Levels 1-4) ---


def get_stock_quantity(connection, item_id, location_id, level):
    row = connection.execute(
        """
        SELECT quantity FROM stock_levels
        WHERE item_id = ? AND location_id = ? AND level = ?
        """,
        (item_id, location_id, level),
    ).fetchone()
    return int(row["quantity"]) if row else 0


def used_on_level(connection, location_id, level):
    row = connection.execute(
        """
        SELECT COALESCE(SUM(quantity), 0) AS used FROM stock_levels
        WHERE location_id = ? AND level = ?
        """,
        (location_id, level),
    ).fetchone()
    return int(row["used"])


def used_by_location(connection):
    rows = connection.execute(
        """
        SELECT location_id, SUM(quantity) AS used FROM stock_levels
        GROUP BY location_id
        """
    ).fetchall()
    return {row["location_id"]: int(row["used"] or 0) for row in rows}


def add_stock(connection, item_id, location_id, level, quantity):
    connection.execute(
        """
        INSERT INTO stock_levels (item_id, location_id, level, quantity)
        VALUES (?, ?, ?, ?)
        ON CONFLICT (item_id, location_id, level)
        DO UPDATE SET quantity = quantity + excluded.quantity
        """,
        (item_id, location_id, level, quantity),
    )


def remove_stock(connection, item_id, location_id, level, quantity):
    connection.execute(
        """
        UPDATE stock_levels SET quantity = quantity - ?
        WHERE item_id = ? AND location_id = ? AND level = ?
        """,
        (quantity, item_id, location_id, level),
    )
    connection.execute(
        """
        DELETE FROM stock_levels
        WHERE item_id = ? AND location_id = ? AND level = ? AND quantity <= 0
        """,
        (item_id, location_id, level),
    )


def total_item_stock(connection, item_id):
    row = connection.execute(
        "SELECT COALESCE(SUM(quantity), 0) AS total FROM stock_levels WHERE item_id = ?",
        (item_id,),
    ).fetchone()
    return int(row["total"])


def location_item_stock(connection, item_id, location_id):
    row = connection.execute(
        """
        SELECT COALESCE(SUM(quantity), 0) AS total FROM stock_levels
        WHERE item_id = ? AND location_id = ?
        """,
        (item_id, location_id),
    ).fetchone()
    return int(row["total"])


def list_item_stock(connection, item_id):
    rows = connection.execute(
        """
        SELECT location_id, level, quantity FROM stock_levels
        WHERE item_id = ? AND quantity > 0
        """,
        (item_id,),
    ).fetchall()
    return [dict(row) for row in rows]


def list_location_stock(connection, location_id):
    rows = connection.execute(
        """
        SELECT items.isbn, stock_levels.level, stock_levels.quantity
        FROM stock_levels
        JOIN items ON items.id = stock_levels.item_id
        WHERE stock_levels.location_id = ? AND stock_levels.quantity > 0
        ORDER BY items.isbn, stock_levels.level
        """,
        (location_id,),
    ).fetchall()
    return [dict(row) for row in rows]


def list_stock_with_isbn(connection, query=None):
    sql = """
        SELECT items.isbn, stock_levels.location_id, stock_levels.level, stock_levels.quantity
        FROM stock_levels
        JOIN items ON items.id = stock_levels.item_id
        WHERE stock_levels.quantity > 0
    """
    params = []
    if query:
        sql += " AND instr(items.isbn, ?) > 0"
        params.append(query)
    rows = connection.execute(sql, params).fetchall()
    return [dict(row) for row in rows]


def total_stock(connection):
    row = connection.execute(
        "SELECT COALESCE(SUM(quantity), 0) AS total FROM stock_levels"
    ).fetchone()
    return int(row["total"])


# --- Blowout (Level 5) ---


def get_blowout_quantity(connection, item_id, location_id):
    row = connection.execute(
        "SELECT quantity FROM blowout_levels WHERE item_id = ? AND location_id = ?",
        (item_id, location_id),
    ).fetchone()
    return int(row["quantity"]) if row else 0


def add_blowout(connection, item_id, location_id, quantity):
    connection.execute(
        """
        INSERT INTO blowout_levels (item_id, location_id, quantity)
        VALUES (?, ?, ?)
        ON CONFLICT (item_id, location_id)
        DO UPDATE SET quantity = quantity + excluded.quantity
        """,
        (item_id, location_id, quantity),
    )
    return get_blowout_quantity(connection, item_id, location_id)


def blowout_by_location(connection):
    rows = connection.execute(
        """
        SELECT location_id, SUM(quantity) AS used FROM blowout_levels
        GROUP BY location_id
        """
    ).fetchall()
    return {row["location_id"]: int(row["used"] or 0) for row in rows}


def list_location_blowout(connection, location_id):
    rows = connection.execute(
        """
        SELECT items.isbn, blowout_levels.quantity
        FROM blowout_levels
        JOIN items ON items.id = blowout_levels.item_id
        WHERE blowout_levels.location_id = ? AND blowout_levels.quantity > 0
        ORDER BY items.isbn
        """,
        (location_id,),
    ).fetchall()
    return [dict(row) for row in rows]


def total_blowout(connection):
    row = connection.execute(
        "SELECT COALESCE(SUM(quantity), 0) AS total FROM blowout_levels"
    ).fetchone()
    return int(row["total"])


# --- Unassigned overflow ---


def get_overflow_quantity(connection, item_id):
    row = connection.execute(
        "SELECT quantity FROM global_overflow WHERE item_id = ?", (item_id,)
    ).fetchone()
    return int(row["quantity"]) if row else 0


def add_overflow(connection, item_id, quantity):
    connection.execute(
        """
        INSERT INTO global_overflow (item_id, quantity)
        VALUES (?, ?)
        ON CONFLICT (item_id)
        DO UPDATE SET quantity = quantity + excluded.quantity
        """,
        (item_id, quantity),
    )


def subtract_overflow(connection, item_id, quantity):
    connection.execute(
        "UPDATE global_overflow SET quantity = MAX(quantity - ?, 0) WHERE item_id = ?",
        (quantity, item_id),
    )
    connection.execute(
        "DELETE FROM global_overflow WHERE item_id = ? AND quantity <= 0", (item_id,)
    )


def list_overflow(connection):
    rows = connection.execute(
        """
        SELECT items.isbn, global_overflow.quantity
        FROM global_overflow
        JOIN items ON items.id = global_overflow.item_id
        WHERE global_overflow.quantity > 0
        ORDER BY global_overflow.quantity DESC, items.isbn ASC
        """
    ).fetchall()
    return [dict(row) for row in rows]


def total_overflow(connection):
    row = connection.execute(
        "SELECT COALESCE(SUM(quantity), 0) AS total FROM global_overflow"
    ).fetchone()
    return int(row["total"])


# --- Movement journal ---


def add_movement(connection, item_id, kind, quantity, location_id=None, level=None):
    if kind not in MOVEMENT_KINDS:
        raise ValueError(f"Unknown movement kind: {kind}")
    connection.execute(
        """
        INSERT INTO movements (item_id, kind, quantity, location_id, level, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (item_id, kind, quantity, location_id, level, _utc_now()),
    )


def movement_totals(connection):
    rows = connection.execute(
        "SELECT kind, COALESCE(SUM(quantity), 0) AS total FROM movements GROUP BY kind"
    ).fetchall()
    totals = {kind: 0 for kind in MOVEMENT_KINDS}
    for row in rows:
        totals[row["kind"]] = int(row["total"])
    return totals


def list_movements(connection, limit=None):
    sql = """
        SELECT movements.id, items.isbn, movements.kind, movements.quantity,
               movements.location_id, movements.level, movements.created_at
        FROM movements
        JOIN items ON items.id = movements.item_id
        ORDER BY movements.id DESC
    """
    params = []
    if limit:
        sql += " LIMIT ?"
        params.append(int(limit))
    rows = connection.execute(sql, params).fetchall()
    return [dict(row) for row in rows]
