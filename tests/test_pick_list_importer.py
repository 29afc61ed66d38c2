import io

import pytest

from services.pick_list_importer import PickListImporter


def test_parse_csv_merges_duplicate_isbns_and_keeps_leading_zeros():
    csv_body = "EAN,Copies\n0123,2\n0123,3\n978,1.9\n"

    parsed = PickListImporter().parse_csv(io.StringIO(csv_body))

    assert parsed["lines"] == [{"isbn": "0123", "quantity": 5}, {"isbn": "978", "quantity": 1}]
    assert parsed["rejected"] == []
    assert parsed["total_rows"] == 3


def test_parse_csv_reports_rejected_rows_with_reasons():
    csv_body = "isbn,quantity,title\n,3,Lost\n978,0,Zero\n979,lots,Words\n980,4,Fine\n"

    parsed = PickListImporter().parse_csv(io.StringIO(csv_body))

    assert parsed["lines"] == [{"isbn": "980", "quantity": 4}]
    assert parsed["rejected"] == [
        {"row": 2, "isbn": "", "quantity": "3", "reason": "Missing ISBN value."},
        {"row": 3, "isbn": "978", "quantity": "0", "reason": "Quantity must be a positive number."},
        {"row": 4, "isbn": "979", "quantity": "lots", "reason": "Quantity must be a positive number."},
    ]


def test_parse_csv_requires_isbn_and_quantity_columns():
    with pytest.raises(ValueError, match="Missing required columns"):
        PickListImporter().parse_csv(io.StringIO("isbn,title\n978,Book\n"))
