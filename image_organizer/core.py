import logging
from collections import Counter
from typing import Optional

from tqdm import tqdm

from .config import OrganizerSettings
from .enrichment.client import OllamaTagEnricher
from .exceptions import ConfigurationError
from .geo.geocoder import Geocoder
from .geo.locations import LocationIndex
from .models import Coordinates, Outcome
from .organization.processor import MediaProcessor
from .organization.rules import DirectoryLocks, PathBuilder
from .scanning.filesystem import DiskScanner
from .scanning.watcher import WatchService


def parse_forced_location(value: Optional[str], index: LocationIndex) -> Optional[Coordinates]:
    """
    Accepts 'lat,lon' or a city name ('Paris' or 'Paris-FR').
    """
    if not value:
        return None

    parts = [p.strip() for p in value.split(",")]
    if len(parts) == 2:
        try:
            lat, lon = float(parts[0]), float(parts[1])
        except ValueError:
            pass
        else:
            if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
                raise ConfigurationError(f"GPS coordinates out of range: {value}")
            return Coordinates(lat, lon)

    record = index.find(value)
    if record is None and "-" in value:
        name, _, country = value.rpartition("-")
        record = index.find(name, country)
    if record is None:
        raise ConfigurationError(f"Unknown location for --set-gps: {value}")

    logging.info(f"Forcing location to {record.name}-{record.country_code}")
    return Coordinates(record.latitude, record.longitude)


class ImageOrganizerApp:
    def __init__(self, settings: OrganizerSettings, index: Optional[LocationIndex] = None):
        self.settings = settings
        self.index = index if index is not None else LocationIndex.load(settings.cities_path)

        enricher = None
        if settings.use_ollama:
            enricher = OllamaTagEnricher(settings.ollama_url, settings.model, settings.timeout)

        # Output trees nested inside the source must not be re-read
        self.scanner = DiskScanner(settings.source_dir, [settings.dest_dir, settings.processed_dir])

        self.processor = MediaProcessor(
            source_root=settings.source_dir,
            path_builder=PathBuilder(settings.dest_dir),
            geocoder=Geocoder(self.index),
            enricher=enricher,
            processed_root=settings.processed_dir,
            forced_coordinates=parse_forced_location(settings.set_gps, self.index),
            locks=DirectoryLocks(),
        )

    def organize(self) -> Counter:
        """
        One-off pass over the source tree, one file at a time.
        """
        logging.info(f"Scanning {self.scanner.root}...")

        outcomes = Counter()
        for path in tqdm(self.scanner.iter_files(), desc="Organizing", unit="file"):
            outcomes[self.processor.process(path)] += 1

        logging.info(
            f"Scan complete. Placed {outcomes[Outcome.PLACED]}, "
            f"skipped {outcomes[Outcome.SKIPPED]}, failed {outcomes[Outcome.FAILED]}."
        )
        return outcomes

    def watch(self) -> None:
        """Processes new files until interrupted."""
        service = WatchService(
            self.scanner,
            self.processor.process,
            workers=self.settings.workers,
        )
        service.run_forever()

    def run(self) -> Counter:
        outcomes = self.organize()
        if self.settings.watch:
            self.watch()
        return outcomes
