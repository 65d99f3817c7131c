import csv
import logging
import math
from pathlib import Path
from typing import Iterable, Optional, Tuple

from .. import config
from ..exceptions import DataUnavailable
from ..models import LocationRecord


class LocationIndex:
    """
    In-memory table of reference cities.

    Lookups are a linear scan using planar distance on raw (lat, lng)
    degrees. This is an approximation: it drifts from great-circle distance
    near the poles and across the date line, which is acceptable at city
    granularity.
    """

    def __init__(self, records: Iterable[LocationRecord]):
        self.records: Tuple[LocationRecord, ...] = tuple(records)

    def __len__(self) -> int:
        return len(self.records)

    @classmethod
    def load(cls, table_path: Path) -> "LocationIndex":
        """
        Reads a city CSV (simplemaps worldcities layout).
        Malformed rows are skipped; an unreadable file raises DataUnavailable.
        """
        table_path = Path(table_path)
        records = []
        skipped = 0

        try:
            with table_path.open("r", newline="", encoding="utf-8") as f:
                reader = csv.DictReader(f)
                fields = reader.fieldnames or []
                country_col = next((c for c in config.COUNTRY_COLUMNS if c in fields), None)
                required = (config.CITY_COLUMN, config.LAT_COLUMN, config.LNG_COLUMN)
                if country_col is None or any(col not in fields for col in required):
                    raise DataUnavailable(
                        f"{table_path} is missing required columns "
                        f"(need city, lat, lng and one of {config.COUNTRY_COLUMNS})"
                    )

                for line_no, row in enumerate(reader, start=2):
                    record = cls._parse_row(row, country_col)
                    if record is None:
                        skipped += 1
                        logging.debug(f"Skipping malformed location row {line_no} in {table_path}")
                        continue
                    records.append(record)
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise DataUnavailable(f"Cannot read location table {table_path}: {e}") from e

        logging.info(f"Loaded {len(records)} locations from {table_path} ({skipped} rows skipped)")
        return cls(records)

    @staticmethod
    def _parse_row(row: dict, country_col: str) -> Optional[LocationRecord]:
        name = (row.get(config.CITY_COLUMN) or "").strip()
        if not name:
            return None
        try:
            lat = float(row[config.LAT_COLUMN])
            lng = float(row[config.LNG_COLUMN])
        except (KeyError, TypeError, ValueError):
            return None
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return None
        return LocationRecord(
            name=name,
            country_code=(row.get(country_col) or "").strip(),
            latitude=lat,
            longitude=lng,
        )

    def nearest(self, latitude: float, longitude: float) -> Optional[LocationRecord]:
        """Closest record; the first one in table order wins on exact ties."""
        best = None
        best_distance = math.inf
        for record in self.records:
            distance = math.sqrt(
                (latitude - record.latitude) ** 2 +
                (longitude - record.longitude) ** 2
            )
            if distance < best_distance:
                best_distance = distance
                best = record
        return best

    def find(self, name: str, country_code: Optional[str] = None) -> Optional[LocationRecord]:
        """Case-insensitive lookup by city name, optionally narrowed by country."""
        wanted = name.strip().lower()
        cc = country_code.strip().lower() if country_code else None
        for record in self.records:
            if record.name.lower() != wanted:
                continue
            if cc and record.country_code.lower() != cc:
                continue
            return record
        return None
