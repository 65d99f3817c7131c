from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional


class MediaKind(Enum):
    IMAGE = "image"
    VIDEO = "video"
    UNSUPPORTED = "unsupported"


class FileFormat(Enum):
    JPEG_LIKE = "jpeg_like"
    OTHER_IMAGE = "other_image"
    VIDEO_CONTAINER = "video_container"


class Outcome(Enum):
    """Terminal states of the per-file pipeline."""
    PLACED = "placed"
    SKIPPED = "skipped"
    FAILED = "failed"


class Coordinates(NamedTuple):
    """Signed decimal degrees."""
    latitude: float
    longitude: float


@dataclass(frozen=True)
class LocationRecord:
    """
    One row of the reference city table. Loaded once, never mutated.
    """
    name: str
    country_code: str
    latitude: float
    longitude: float


@dataclass
class MediaItem:
    """
    Working state for a single file, built at the start of processing
    and discarded once the file is placed or skipped.
    """
    source_path: Path
    kind: MediaKind
    file_format: Optional[FileFormat]
    capture_date: datetime

    coordinates: Optional[Coordinates] = None
    resolved_location: Optional[LocationRecord] = None
    tags: List[str] = field(default_factory=list)
    caption: Optional[str] = None

    # Image-class items only
    raw_bytes: Optional[bytes] = None
    metadata_block: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class DestinationPlan:
    directory: Path
    filename: str

    @property
    def path(self) -> Path:
        return self.directory / self.filename
