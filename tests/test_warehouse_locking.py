import threading
import unittest

from services import inventory
from services.warehouse import Warehouse

SINGLE_FACE = {"A": {"bays": 1, "audio": False, "endcaps": [1]}}


def _run_together(count, target):
    barrier = threading.Barrier(count)
    results = []
    results_lock = threading.Lock()

    def worker():
        barrier.wait()
        outcome = target()
        with results_lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results


class ConcurrentShipTests(unittest.TestCase):
    def setUp(self):
        self.warehouse = Warehouse()

    def tearDown(self):
        self.warehouse.close()

    def test_concurrent_ships_never_oversell(self):
        self.warehouse.receive("ISBN-1", 45)

        results = _run_together(12, lambda: self.warehouse.ship_total("ISBN-1", 10))

        self.assertEqual(len(results), 12)
        self.assertEqual(sum(1 for r in results if r["ok"]), 45 // 10)
        self.assertTrue(all(r["error"] == "insufficient_stock" for r in results if not r["ok"]))
        totals = self.warehouse.ledger_totals()
        self.assertEqual(totals["stock"], 5)
        self.assertEqual(totals["shipped"], 40)
        self.assertTrue(totals["balanced"])
        negative = self.warehouse.connection.execute(
            "SELECT COUNT(*) AS n FROM stock_levels WHERE quantity < 0"
        ).fetchone()
        self.assertEqual(negative["n"], 0)

    def test_concurrent_receives_and_ships_stay_balanced(self):
        self.warehouse.receive("ISBN-1", 100)

        def mixed():
            received = self.warehouse.receive("ISBN-1", 7)
            shipped = self.warehouse.ship_total("ISBN-1", 9)
            return received["ok"] and shipped["ok"]

        results = _run_together(8, mixed)

        self.assertEqual(results, [True] * 8)
        totals = self.warehouse.ledger_totals()
        self.assertEqual(totals["stock"], 100 + 8 * 7 - 8 * 9)
        self.assertTrue(totals["balanced"])


def test_shelf_snapshot_is_read_while_the_write_lock_is_held(monkeypatch):
    warehouse = Warehouse(rows_config=SINGLE_FACE)
    warehouse.receive("ISBN-1", 166)
    free_during_snapshot = []
    original = inventory.get_shelf_contents

    def _snapshot(*args, **kwargs):
        def try_lock():
            acquired = warehouse._lock.acquire(blocking=False)
            if acquired:
                warehouse._lock.release()
            free_during_snapshot.append(acquired)

        other = threading.Thread(target=try_lock)
        other.start()
        other.join(timeout=5)
        return original(*args, **kwargs)

    monkeypatch.setattr(inventory, "get_shelf_contents", _snapshot)

    put = warehouse.put_exact("ISBN-2", 1, shelf_barcode="A-01-F-L1", allow_overfill=True, with_shelf=True)
    manual = warehouse.assign_manual("ISBN-3", "A", 1, "F", 2, with_shelf=True)
    moved = warehouse.assign_from_overflow("ISBN-1", "A", 1, "F", 6, with_shelf=True)

    assert free_during_snapshot == [False, False, False]
    assert put["shelf"]["level_items"][1]["level1"] == 1
    assert manual["shelf"]["blowout_total"] == 2
    assert moved["shelf"]["blowout_total"] == 8
    assert moved["global_overflow"] == {"total": 0, "items": []}


def test_operations_without_snapshot_leave_result_unchanged():
    warehouse = Warehouse()

    result = warehouse.assign_manual("ISBN-1", "A", 1, "F", 2)

    assert "shelf" not in result


if __name__ == "__main__":
    unittest.main()
