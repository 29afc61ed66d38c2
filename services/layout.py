LEVEL_SOFT_CAP = 40
BLOWOUT_CAPACITY = 40
NORMAL_LEVELS = (1, 2, 3, 4)
BLOWOUT_LEVEL = 5
SIDES = ("F", "B")

# Row A: 3 bays + 1 perpendicular endcap (bay 4, front only)
# Row B: 4 bays, front + back
# Row C: 4 bays + 1 perpendicular endcap (bay 5, front only)
# Row D: 3 bays + 1 endcap, audio only. Shown in the layout but never receivable.
DEFAULT_ROWS_CONFIG = {
    "A": {"bays": 4, "audio": False, "endcaps": [4]},
    "B": {"bays": 4, "audio": False, "endcaps": []},
    "C": {"bays": 5, "audio": False, "endcaps": [5]},
    "D": {"bays": 4, "audio": True, "endcaps": [4]},
}


def location_code(row, bay, side):
    return f"{row}-{int(bay):02d}-{side}"


def normalize_row(value):
    return str(value or "").strip().upper()


def normalize_side(value):
    text = str(value or "").strip().upper()
    return text[:1]


def normalize_bay(value):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def build_locations(rows_config=None):
    rows_config = rows_config or DEFAULT_ROWS_CONFIG
    default_capacity = LEVEL_SOFT_CAP * len(NORMAL_LEVELS)
    locations = []
    next_id = 1
    for row, cfg in rows_config.items():
        endcaps = set(cfg.get("endcaps") or [])
        for bay in range(1, int(cfg.get("bays") or 0) + 1):
            sides = ("F",) if bay in endcaps else SIDES
            for side in sides:
                locations.append(
                    {
                        "location_id": next_id,
                        "row": row,
                        "bay": bay,
                        "side": side,
                        "location_code": location_code(row, bay, side),
                        "capacity": 0 if cfg.get("audio") else default_capacity,
                    }
                )
                next_id += 1
    return locations


def walk_order_key(location):
    # Lexical side order, so Back sorts before Front here.
    return (location["row"], location["bay"], location["side"])


class LocationRegistry:
    def __init__(self, rows_config=None):
        self.rows_config = dict(rows_config or DEFAULT_ROWS_CONFIG)
        self._locations = tuple(build_locations(self.rows_config))
        self._by_id = {loc["location_id"]: loc for loc in self._locations}
        self._by_face = {
            (loc["row"], loc["bay"], loc["side"]): loc for loc in self._locations
        }
        self._walk_order = tuple(sorted(self._locations, key=walk_order_key))

    def __len__(self):
        return len(self._locations)

    def __iter__(self):
        return iter(self._locations)

    @property
    def rows(self):
        return list(self.rows_config.keys())

    def get(self, location_id):
        try:
            return self._by_id.get(int(location_id))
        except (TypeError, ValueError):
            return None

    def find(self, row, bay, side):
        return self._by_face.get((normalize_row(row), normalize_bay(bay), normalize_side(side)))

    def walk_order(self):
        return list(self._walk_order)

    def receivable(self):
        return [loc for loc in self._walk_order if loc["capacity"] > 0]

    def in_row(self, row):
        return [loc for loc in self._locations if loc["row"] == row]
