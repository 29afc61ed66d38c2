import unittest

from services import validation
from services.pick_planner import normalize_lines, row_direction
from services.warehouse import Warehouse


class PickPlannerTests(unittest.TestCase):
    def setUp(self):
        self.warehouse = Warehouse()

    def tearDown(self):
        self.warehouse.close()

    def test_single_stop_groups_levels_for_one_isbn(self):
        self.warehouse.receive("ISBN-1", 45)

        plan = self.warehouse.build_pick_plan([{"isbn": "ISBN-1", "quantity": 45}])

        self.assertTrue(plan["ok"])
        self.assertEqual(len(plan["stops"]), 1)
        stop = plan["stops"][0]
        self.assertEqual(stop["key"], "A-01-B")
        self.assertEqual(
            stop["picks"],
            [{"isbn": "ISBN-1", "quantity": 45, "levels": [{"level": 1, "quantity": 40}, {"level": 2, "quantity": 5}]}],
        )
        self.assertEqual(plan["missing"], [])
        self.assertEqual(plan["totals"], {"requested": 45, "available": 45})

    def test_plan_does_not_touch_stock(self):
        self.warehouse.receive("ISBN-1", 45)

        self.warehouse.build_pick_plan([{"isbn": "ISBN-1", "quantity": 45}])

        self.assertEqual(self.warehouse.item_locations("ISBN-1")["total"], 45)

    def test_stops_follow_serpentine_route(self):
        for barcode in ["C-02-F-L1", "B-03-B-L2", "B-01-F-L1", "A-02-B-L1", "A-02-F-L4"]:
            self.warehouse.put_exact("ISBN-1", 5, shelf_barcode=barcode)

        plan = self.warehouse.build_pick_plan([{"isbn": "ISBN-1", "quantity": 25}])

        self.assertEqual(
            [stop["key"] for stop in plan["stops"]],
            ["A-02-F", "A-02-B", "B-03-B", "B-01-F", "C-02-F"],
        )
        self.assertEqual(
            plan["diagram"]["rows"],
            [
                {"row": "A", "direction": "ASC", "path": ["A-02-F", "A-02-B"]},
                {"row": "B", "direction": "DESC", "path": ["B-03-B", "B-01-F"]},
                {"row": "C", "direction": "ASC", "path": ["C-02-F"]},
            ],
        )
        self.assertEqual(plan["diagram"]["aisle_order"], ["A", "B", "C", "D"])

    def test_stops_list_isbns_in_order(self):
        self.warehouse.put_exact("ZZZ", 3, shelf_barcode="A-01-F-L1")
        self.warehouse.put_exact("AAA", 2, shelf_barcode="A-01-F-L2")

        plan = self.warehouse.build_pick_plan([{"isbn": "ZZZ", "quantity": 3}, {"isbn": "AAA", "quantity": 2}])

        self.assertEqual([pick["isbn"] for pick in plan["stops"][0]["picks"]], ["AAA", "ZZZ"])

    def test_unknown_and_short_lines_are_reported_missing(self):
        self.warehouse.receive("ISBN-1", 10)

        plan = self.warehouse.build_pick_plan(
            [{"isbn": "ISBN-1", "quantity": 15}, {"isbn": "GHOST", "quantity": 2}]
        )

        self.assertTrue(plan["ok"])
        self.assertEqual(
            plan["missing"],
            [
                {"isbn": "ISBN-1", "requested": 15, "available": 10, "short": 5},
                {"isbn": "GHOST", "requested": 2, "available": 0, "short": 2},
            ],
        )
        self.assertEqual(sum(step["quantity"] for step in plan["steps"]), 10)

    def test_duplicate_lines_never_claim_the_same_units_twice(self):
        self.warehouse.receive("ISBN-1", 10)

        plan = self.warehouse.build_pick_plan(
            [{"isbn": "ISBN-1", "quantity": 8}, {"isbn": "ISBN-1", "quantity": 8}]
        )

        self.assertEqual(sum(step["quantity"] for step in plan["steps"]), 10)
        self.assertEqual(plan["missing"], [{"isbn": "ISBN-1", "requested": 8, "available": 2, "short": 6}])

    def test_blowout_stock_is_not_picked(self):
        self.warehouse.assign_manual("ISBN-1", "A", 1, "F", 10)

        plan = self.warehouse.build_pick_plan([{"isbn": "ISBN-1", "quantity": 1}])

        self.assertEqual(plan["stops"], [])
        self.assertEqual(plan["missing"][0]["short"], 1)

    def test_empty_or_malformed_input_is_rejected(self):
        self.assertEqual(self.warehouse.build_pick_plan([])["error"], validation.VALIDATION_ERROR)
        self.assertEqual(self.warehouse.build_pick_plan(None)["error"], validation.VALIDATION_ERROR)
        self.assertEqual(self.warehouse.build_pick_plan("ISBN-1")["error"], validation.VALIDATION_ERROR)


def test_normalize_lines_floors_and_drops_bad_entries():
    lines = [
        {"isbn": " 978 ", "quantity": "2.9"},
        {"isbn": "", "quantity": 3},
        {"isbn": "979", "quantity": 0},
        {"isbn": "980", "quantity": "many"},
        "not-a-line",
    ]

    assert normalize_lines(lines) == [{"isbn": "978", "quantity": 2}]


def test_row_direction_alternates():
    assert [row_direction(row) for row in "ABCD"] == ["ASC", "DESC", "ASC", "DESC"]


if __name__ == "__main__":
    unittest.main()
