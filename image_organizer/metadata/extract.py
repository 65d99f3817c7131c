import io
import json
import logging
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

import exifread
import piexif

from .. import config
from ..exceptions import MetadataParseError
from ..models import Coordinates

# Type hint 'Any' prevents Pylance from complaining about "None" having no attribute "parse"
MediaInfo: Any = None
try:
    from pymediainfo import MediaInfo
except ImportError:
    MediaInfo = None


def empty_block() -> Dict[str, Any]:
    """A fresh EXIF block with no tags, in piexif's layout."""
    return {"0th": {}, "Exif": {}, "GPS": {}, "Interop": {}, "1st": {}, "thumbnail": None}


def load_block(raw: bytes) -> Dict[str, Any]:
    """
    Loads the writable EXIF block from JPEG bytes.
    Never raises: missing or corrupt EXIF yields an empty block.
    """
    try:
        block = piexif.load(raw)
    except Exception as e:
        logging.debug(f"No usable EXIF block ({e}), starting from an empty one")
        return empty_block()
    for key, value in empty_block().items():
        block.setdefault(key, value)
    return block


def dms_to_decimal(dms, ref: str) -> float:
    """Degree/minute/second triple to signed decimal degrees. S and W are negative."""
    degrees, minutes, seconds = (float(v) for v in dms[:3])
    dd = degrees + (minutes / 60.0) + (seconds / 3600.0)
    if ref.strip().upper() in ("S", "W"):
        dd = -dd
    return dd


class ResolvedMetadata(NamedTuple):
    capture_date: datetime
    coordinates: Optional[Coordinates]
    block: Dict[str, Any]


class MetadataResolver:
    """
    Resolves capture date and GPS position for JPEG-like images.

    Strategy:
      - Fields are read with 'exifread'.
      - The writable block is loaded separately with 'piexif' so the
        writer always gets a fresh, per-file structure to extend.
    """

    def resolve(self, raw: bytes, mtime: datetime, source: Optional[Path] = None) -> ResolvedMetadata:
        label = source if source is not None else "<bytes>"
        tags = self._read_tags(raw, label)

        capture_date = self._resolve_date(tags, mtime, label)
        coordinates = self._resolve_gps(tags, label)

        return ResolvedMetadata(capture_date, coordinates, load_block(raw))

    def _read_tags(self, raw: bytes, label) -> Dict[str, Any]:
        try:
            # details=False skips MakerNotes and thumbnails
            return exifread.process_file(io.BytesIO(raw), details=False)
        except Exception as e:
            logging.warning(f"ExifRead failed for {label}: {e}")
            return {}

    def _resolve_date(self, tags, baseline: datetime, label) -> datetime:
        """mtime, then DateTimeDigitized, then DateTimeOriginal; last parseable wins."""
        resolved = baseline
        for tag in config.DATE_TAGS:
            if tag not in tags:
                continue
            try:
                resolved = parse_exif_datetime(str(tags[tag]))
            except MetadataParseError as e:
                logging.info(f"{label}: ignoring {tag}: {e}")
        return resolved

    def _resolve_gps(self, tags, label) -> Optional[Coordinates]:
        if 'GPS GPSLatitude' not in tags:
            return None
        try:
            lat = dms_to_decimal(tags['GPS GPSLatitude'].values, str(tags['GPS GPSLatitudeRef']))
            lng = dms_to_decimal(tags['GPS GPSLongitude'].values, str(tags['GPS GPSLongitudeRef']))
        except Exception as e:
            logging.error(f"{label}: Error extracting GPS coordinates: {e}")
            return None
        return Coordinates(lat, lng)


def parse_exif_datetime(value: str) -> datetime:
    """Parses 'YYYY:MM:DD HH:MM:SS'."""
    clean = value.replace("\x00", "").strip()
    try:
        return datetime.strptime(clean, config.EXIF_DATE_FORMAT)
    except ValueError as e:
        raise MetadataParseError(f"unparseable EXIF date {clean!r}") from e


@dataclass
class VideoInfo:
    duration_sec: Optional[float] = None
    container_format: Optional[str] = None


class VideoProbe:
    """
    Reads container metadata from video files. Informational only.

    Strategies:
      - 'pymediainfo' (fast wrapper) -> falls back to 'exiftool' (robust).
    """

    def probe(self, path: Path) -> VideoInfo:
        if MediaInfo is not None:
            try:
                info = self._probe_mediainfo(path)
                if info.duration_sec or info.container_format:
                    return info
            except Exception as e:
                logging.debug(f"MediaInfo failed for {path}: {e}")

        try:
            return self._probe_exiftool(path)
        except Exception as e:
            # Only log at debug level to avoid spamming console if tool is missing
            logging.debug(f"ExifTool failed for {path}: {e}")

        return VideoInfo()

    def _probe_mediainfo(self, path: Path) -> VideoInfo:
        mi = MediaInfo.parse(str(path))
        info = VideoInfo()
        for track in mi.tracks:
            if track.track_type == "General":
                if getattr(track, "duration", None):
                    # MediaInfo duration is in milliseconds
                    info.duration_sec = float(track.duration) / 1000.0
                info.container_format = getattr(track, "format", None)
        return info

    def _probe_exiftool(self, path: Path) -> VideoInfo:
        # -j = JSON output, -n = numeric values (duration in seconds)
        cmd = ["exiftool", "-j", "-n", str(path)]
        out = subprocess.check_output(cmd, stderr=subprocess.DEVNULL, text=True)
        data_list = json.loads(out)
        if not data_list:
            return VideoInfo()

        tags = data_list[0]
        info = VideoInfo(container_format=tags.get("FileType"))
        if tags.get("Duration"):
            try:
                info.duration_sec = float(tags["Duration"])
            except ValueError:
                pass
        return info
