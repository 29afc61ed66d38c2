import pandas as pd

from services import pick_planner

REQUIRED_COLUMNS = ["isbn", "quantity"]

COLUMN_ALIASES = {
    "isbn13": "isbn",
    "isbn-13": "isbn",
    "ean": "isbn",
    "qty": "quantity",
    "ordqty": "quantity",
    "count": "quantity",
    "copies": "quantity",
}


class PickListImporter:
    def parse_csv(self, file_stream):
        df = pd.read_csv(file_stream, dtype=str, keep_default_na=False)
        column_map = self._normalize_columns(df.columns)

        available = set(column_map.values())
        missing = [col for col in REQUIRED_COLUMNS if col not in available]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        df = df.rename(columns=column_map)
        df = df[[col for col in df.columns if col in REQUIRED_COLUMNS]]

        lines = []
        rejected = []
        for row_number, row in enumerate(df.to_dict(orient="records"), start=2):
            line, reason = self.parse_line(row)
            if line:
                lines.append(line)
            else:
                rejected.append(
                    {
                        "row": row_number,
                        "isbn": str(row.get("isbn") or "").strip(),
                        "quantity": str(row.get("quantity") or "").strip(),
                        "reason": reason,
                    }
                )

        return {
            "lines": self.merge_lines(lines),
            "rejected": rejected,
            "total_rows": len(df),
        }

    def parse_line(self, row):
        normalized = pick_planner.normalize_lines([row])
        if normalized:
            return normalized[0], None
        if not str(row.get("isbn") or "").strip():
            return None, "Missing ISBN value."
        return None, "Quantity must be a positive number."

    def merge_lines(self, lines):
        merged = {}
        for line in lines:
            entry = merged.setdefault(line["isbn"], {"isbn": line["isbn"], "quantity": 0})
            entry["quantity"] += line["quantity"]
        return list(merged.values())

    def _normalize_columns(self, columns):
        column_map = {}
        for col in columns:
            key = str(col).strip().lower()
            key = COLUMN_ALIASES.get(key, key)
            if key in REQUIRED_COLUMNS and key not in column_map.values():
                column_map[col] = key
        return column_map
