import logging
import os
import threading

import db
from services import blowout, inventory, pick_planner, placement, summary
from services.layout import LocationRegistry

logger = logging.getLogger(__name__)

_WAREHOUSE = None
_WAREHOUSE_LOCK = threading.Lock()


def _as_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


INVENTORY_INDEX_LIMIT = _as_int(os.environ.get("INVENTORY_INDEX_LIMIT"), 200)


def get_warehouse():
    global _WAREHOUSE
    with _WAREHOUSE_LOCK:
        if _WAREHOUSE is None:
            _WAREHOUSE = Warehouse()
        return _WAREHOUSE


class Warehouse:
    """One building's shelves and ledgers.

    Every public operation runs under a single lock and inside one SQLite
    transaction, so scan-then-mutate sequences (the ship availability check,
    the soft-cap check on put) never see another caller's half-finished write.
    """

    def __init__(self, rows_config=None, db_path=db.DEFAULT_DB_PATH, chronic_tracker=None):
        self.registry = LocationRegistry(rows_config)
        self.connection = db.get_connection(db_path)
        db.init_db(self.connection)
        db.seed_locations(self.connection, self.registry)
        self.chronic_tracker = chronic_tracker or summary.ChronicShelfTracker()
        self._lock = threading.RLock()

    def _run(self, operation, *args, **kwargs):
        with self._lock:
            with self.connection:
                return operation(self.connection, self.registry, *args, **kwargs)

    def close(self):
        with self._lock:
            self.connection.close()

    # --- Mutations ---

    def receive(self, isbn, quantity):
        result = self._run(placement.receive, isbn, quantity)
        if result["ok"]:
            logger.info(
                "Received isbn=%s qty=%s placed=%s", result["isbn"], result["received"], result["placed"]
            )
            if result["overflow"]:
                logger.warning(
                    "No shelf room for isbn=%s; %s copies left in unassigned overflow",
                    result["isbn"],
                    result["overflow"],
                )
        return result

    def ship_total(self, isbn, quantity):
        result = self._run(placement.ship_total, isbn, quantity)
        if result["ok"]:
            logger.info("Shipped isbn=%s qty=%s", result["isbn"], result["total_shipped"])
        else:
            logger.warning("Ship rejected isbn=%s: %s", isbn, result["message"])
        return result

    def ship_from_face(self, isbn, location_id, quantity):
        result = self._run(placement.ship_from_face, isbn, location_id, quantity)
        if result["ok"]:
            logger.info(
                "Shipped isbn=%s qty=%s from %s", result["isbn"], result["shipped"], result["location_code"]
            )
        else:
            logger.warning("Shelf ship rejected isbn=%s location_id=%s: %s", isbn, location_id, result["message"])
        return result

    def _attach_shelf(self, result):
        # Caller holds the lock, so no other write lands between mutation and snapshot.
        location = self.registry.get(result["location_id"])
        result["shelf"] = self._run(
            inventory.get_shelf_contents, location["row"], location["bay"], location["side"]
        )
        return result

    def put_exact(self, isbn, quantity, with_shelf=False, **target):
        with self._lock:
            result = self._run(placement.put_exact, isbn, quantity, **target)
            if with_shelf and result["ok"]:
                self._attach_shelf(result)
        if result["ok"]:
            logger.info(
                "Put isbn=%s placed=%s remaining=%s at %s L%s overfill=%s",
                result["isbn"],
                result["placed"],
                result["remaining"],
                result["location_code"],
                result["level"],
                result["overfill"],
            )
        return result

    def assign_manual(self, isbn, row, bay, side, quantity, with_shelf=False):
        with self._lock:
            result = self._run(blowout.assign_manual, isbn, row, bay, side, quantity)
            if with_shelf and result["ok"]:
                self._attach_shelf(result)
        if result["ok"]:
            logger.info(
                "Blowout isbn=%s qty=%s at %s (now %s)",
                result["isbn"],
                result["added"],
                result["location_code"],
                result["new_total_on_blowout"],
            )
        return result

    def assign_from_overflow(self, isbn, row, bay, side, quantity, with_shelf=False):
        with self._lock:
            result = self._run(blowout.assign_from_overflow, isbn, row, bay, side, quantity)
            if with_shelf and result["ok"]:
                self._attach_shelf(result)
                result["global_overflow"] = inventory.get_global_overflow(self.connection)
        if result["ok"]:
            logger.info(
                "Moved overflow isbn=%s qty=%s to blowout %s; %s left unassigned",
                result["isbn"],
                result["moved"],
                result["location_code"],
                result["remaining_overflow"],
            )
        else:
            logger.warning("Overflow transfer rejected isbn=%s: %s", isbn, result["message"])
        return result

    # --- Queries ---

    def build_pick_plan(self, lines):
        return self._run(pick_planner.build_pick_plan, lines)

    def summary(self):
        # Sampling mutates the chronic tracker, so it shares the lock.
        with self._lock:
            return summary.build_summary(self.connection, self.registry, self.chronic_tracker)

    def layout(self):
        return self._run(inventory.get_layout)

    def shelf_contents(self, row, bay, side):
        return self._run(inventory.get_shelf_contents, row, bay, side)

    def item_locations(self, isbn):
        return self._run(inventory.get_item_locations, isbn)

    def inventory_index(self, query="", limited=True):
        # Exports pass limited=False so every ISBN is listed.
        limit = INVENTORY_INDEX_LIMIT if limited else None
        return self._run(inventory.get_inventory_index, query, limit=limit)

    def suggest_location(self, quantity):
        return self._run(inventory.suggest_location, quantity)

    def global_overflow(self):
        with self._lock:
            return inventory.get_global_overflow(self.connection)

    def ledger_totals(self):
        with self._lock:
            return inventory.get_ledger_totals(self.connection)
