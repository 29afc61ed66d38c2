import argparse
import csv
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.layout import NORMAL_LEVELS, LocationRegistry  # noqa: E402

DEFAULT_OUTPUT = ROOT / "data" / "shelf_labels.csv"
COLUMNS = ["barcode", "location_code", "row", "bay", "side", "level"]


def build_label_rows(registry=None):
    registry = registry or LocationRegistry()
    rows = []
    for location in registry.receivable():
        for level in NORMAL_LEVELS:
            rows.append(
                {
                    "barcode": f"{location['location_code']}-L{level}",
                    "location_code": location["location_code"],
                    "row": location["row"],
                    "bay": location["bay"],
                    "side": location["side"],
                    "level": level,
                }
            )
    return rows


def write_labels(path, rows):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
    return len(rows)


def main():
    parser = argparse.ArgumentParser(description="Export shelf-level barcode labels to CSV.")
    parser.add_argument("--output", default=str(DEFAULT_OUTPUT), help="CSV file to write.")
    args = parser.parse_args()

    output = Path(args.output)
    count = write_labels(output, build_label_rows())
    print(f"Wrote {count} shelf labels to {output}")


if __name__ == "__main__":
    main()
