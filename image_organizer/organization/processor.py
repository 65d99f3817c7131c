import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from .. import config
from ..enrichment.client import TagEnricher
from ..geo.geocoder import Geocoder
from ..metadata.extract import MetadataResolver, VideoProbe
from ..metadata.writer import MetadataWriter, add_coordinates, add_tags
from ..models import Coordinates, FileFormat, MediaItem, MediaKind, Outcome
from .mover import FileMover
from .rules import DirectoryLocks, PathBuilder


def classify(path: Path) -> Tuple[MediaKind, Optional[FileFormat]]:
    """Decides by extension alone."""
    fmt = config.EXT_TO_FORMAT.get(path.suffix.lower())
    if fmt is None:
        return MediaKind.UNSUPPORTED, None
    file_format = FileFormat(fmt)
    if file_format is FileFormat.VIDEO_CONTAINER:
        return MediaKind.VIDEO, file_format
    return MediaKind.IMAGE, file_format


class MediaProcessor:
    """
    Runs one file through the pipeline:

        classify -> resolve metadata -> resolve location -> [enrich]
                 -> build path -> (locked) resolve collision -> write or copy
                 -> [move original to processed tree]

    Every file ends PLACED, SKIPPED or FAILED. Exceptions never escape
    `process()`, so a bad file cannot stop a scan or a watch session.
    """

    def __init__(self,
                 source_root: Path,
                 path_builder: PathBuilder,
                 geocoder: Geocoder,
                 resolver: Optional[MetadataResolver] = None,
                 writer: Optional[MetadataWriter] = None,
                 mover: Optional[FileMover] = None,
                 enricher: Optional[TagEnricher] = None,
                 video_probe: Optional[VideoProbe] = None,
                 processed_root: Optional[Path] = None,
                 forced_coordinates: Optional[Coordinates] = None,
                 locks: Optional[DirectoryLocks] = None):
        self.source_root = Path(source_root)
        self.paths = path_builder
        self.geocoder = geocoder
        self.resolver = resolver or MetadataResolver()
        self.writer = writer or MetadataWriter()
        self.mover = mover or FileMover()
        self.enricher = enricher
        self.video_probe = video_probe or VideoProbe()
        self.processed_root = processed_root
        self.forced_coordinates = forced_coordinates
        self.locks = locks or DirectoryLocks()

    def process(self, path: Path) -> Outcome:
        path = Path(path)
        stage = "classify"
        try:
            if not path.is_file():
                logging.debug(f"[SKIP] {path} (not a file)")
                return Outcome.SKIPPED

            kind, file_format = classify(path)
            if kind is MediaKind.UNSUPPORTED:
                logging.debug(f"[SKIP] {path} (unsupported type)")
                return Outcome.SKIPPED

            if kind is MediaKind.VIDEO:
                stage = "probe"
                info = self.video_probe.probe(path)
                logging.info(f"video data: {path} duration={info.duration_sec} format={info.container_format}")
                # Video placement is not implemented
                logging.info(f"[SKIP] {path}")
                return Outcome.SKIPPED

            stage = "resolve metadata"
            item = self._build_item(path, kind, file_format)

            stage = "resolve location"
            self._resolve_location(item)

            if self._should_enrich(item):
                stage = "enrich"
                self._enrich(item)

            stage = "build path"
            plan = self.paths.plan(item.capture_date, item.resolved_location, item.tags, path.name)

            stage = "place"
            with self.locks.hold(plan.directory):
                dest = self.paths.resolve_collision(plan)
                self._place(item, dest)

            if self.processed_root is not None:
                stage = "move to processed"
                self.mover.move_to_processed(path, self.source_root, self.processed_root)

            return Outcome.PLACED

        except Exception as e:
            logging.error(f"Failed to process {path} during {stage}: {e}")
            logging.debug("Traceback:", exc_info=True)
            return Outcome.FAILED

    def _build_item(self, path: Path, kind: MediaKind, file_format: FileFormat) -> MediaItem:
        mtime = datetime.fromtimestamp(path.stat().st_mtime)
        item = MediaItem(
            source_path=path,
            kind=kind,
            file_format=file_format,
            capture_date=mtime,
            raw_bytes=path.read_bytes(),
        )

        if file_format is FileFormat.JPEG_LIKE:
            resolved = self.resolver.resolve(item.raw_bytes, mtime, source=path)
            item.capture_date = resolved.capture_date
            item.coordinates = resolved.coordinates
            item.metadata_block = resolved.block

        return item

    def _resolve_location(self, item: MediaItem) -> None:
        if self.forced_coordinates is not None:
            item.coordinates = self.forced_coordinates
        if item.coordinates is None:
            return

        item.resolved_location = self.geocoder.locate(item.coordinates)
        city = item.resolved_location
        logging.info(
            f"[CITY] {item.coordinates.latitude} {item.coordinates.longitude} => "
            f"{city.name + ' ' + city.country_code if city else None}"
        )

    def _should_enrich(self, item: MediaItem) -> bool:
        # Only JPEG-like files can carry the tags back out
        return self.enricher is not None and item.file_format is FileFormat.JPEG_LIKE

    def _enrich(self, item: MediaItem) -> None:
        try:
            enrichment = self.enricher.enrich(item.raw_bytes)
        except Exception as e:
            # The file is still placed, just untagged
            logging.warning(f"Enrichment failed for {item.source_path}: {e}")
            return
        item.tags = list(enrichment.keywords)
        item.caption = enrichment.caption
        logging.info(f"[TAGS] {item.source_path}: {item.tags}")
        logging.info(f"[CAPTION] {item.source_path}: {item.caption}")

    def _needs_metadata_write(self, item: MediaItem) -> bool:
        if item.file_format is not FileFormat.JPEG_LIKE or item.metadata_block is None:
            return False
        return bool(item.tags or item.caption or self.forced_coordinates is not None)

    def _place(self, item: MediaItem, dest: Path) -> None:
        if not self._needs_metadata_write(item):
            self.mover.copy(item.source_path, dest)
            return

        block = item.metadata_block
        if self.forced_coordinates is not None:
            add_coordinates(block, self.forced_coordinates)
        if item.tags or item.caption:
            add_tags(block, item.tags, item.caption)

        logging.info(f"[COPY] {item.source_path} to {dest} with exif update")
        self.writer.write(item.raw_bytes, block, dest)
