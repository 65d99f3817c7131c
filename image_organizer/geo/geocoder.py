from typing import Optional

from ..models import Coordinates, LocationRecord
from .locations import LocationIndex


def location_tag(record: LocationRecord) -> str:
    """Folder suffix for a location, e.g. 'Paris-FR'."""
    return f"{record.name}-{record.country_code}"


class Geocoder:
    """
    Offline reverse geocoding against a preloaded LocationIndex.
    Any object with a compatible `nearest(lat, lon)` can stand in for the index.
    """

    def __init__(self, index: LocationIndex):
        self.index = index

    def locate(self, coordinates: Optional[Coordinates]) -> Optional[LocationRecord]:
        if coordinates is None:
            return None
        return self.index.nearest(coordinates.latitude, coordinates.longitude)

    def resolve(self, coordinates: Optional[Coordinates]) -> Optional[str]:
        record = self.locate(coordinates)
        return location_tag(record) if record else None
