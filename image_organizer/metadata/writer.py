import io
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple, Union

import piexif

from ..exceptions import PlacementError
from ..models import Coordinates

# Seconds are stored with two decimals
SECONDS_DENOMINATOR = 100


def encode_xp_text(text: str) -> Tuple[int, ...]:
    """Windows XP* tags are BYTE arrays holding UTF-16LE text."""
    return tuple(text.encode("utf-16le"))


def decode_xp_text(value: Union[bytes, Sequence[int]]) -> str:
    return bytes(value).decode("utf-16le").rstrip("\x00")


def decimal_to_dms(decimal: float) -> Tuple[Tuple[int, int], Tuple[int, int], Tuple[int, int]]:
    """Absolute decimal degrees to an EXIF rational DMS triple."""
    decimal = abs(decimal)
    degrees = int(decimal)
    minutes_decimal = (decimal - degrees) * 60
    minutes = int(minutes_decimal)
    seconds = round((minutes_decimal - minutes) * 60 * SECONDS_DENOMINATOR)
    return (degrees, 1), (minutes, 1), (seconds, SECONDS_DENOMINATOR)


def add_coordinates(block: Dict[str, Any], coordinates: Coordinates) -> None:
    gps = block.setdefault("GPS", {})
    gps[piexif.GPSIFD.GPSVersionID] = (2, 2, 0, 0)
    gps[piexif.GPSIFD.GPSLatitude] = decimal_to_dms(coordinates.latitude)
    gps[piexif.GPSIFD.GPSLatitudeRef] = b"N" if coordinates.latitude >= 0 else b"S"
    gps[piexif.GPSIFD.GPSLongitude] = decimal_to_dms(coordinates.longitude)
    gps[piexif.GPSIFD.GPSLongitudeRef] = b"E" if coordinates.longitude >= 0 else b"W"


def add_tags(block: Dict[str, Any],
             tags: Iterable[str],
             caption: Optional[str] = None,
             comment: Optional[str] = None) -> None:
    zeroth = block.setdefault("0th", {})
    if comment:
        zeroth[piexif.ImageIFD.XPComment] = encode_xp_text(comment)
    if caption:
        zeroth[piexif.ImageIFD.XPTitle] = encode_xp_text(caption)
    tags = list(tags)
    if tags:
        zeroth[piexif.ImageIFD.XPKeywords] = encode_xp_text(", ".join(tags))


class MetadataWriter:
    """
    Re-serializes an EXIF block and splices it into the original JPEG.
    Only the APP1 EXIF segment is replaced; the image data is copied as-is.
    """

    def write(self, original: bytes, block: Dict[str, Any], out_path: Path) -> None:
        try:
            exif_bytes = piexif.dump(block)
            buf = io.BytesIO()
            piexif.insert(exif_bytes, original, buf)
        except Exception as e:
            raise PlacementError(f"Cannot serialize EXIF for {out_path}: {e}") from e

        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_bytes(buf.getvalue())
        except OSError as e:
            raise PlacementError(f"Cannot write {out_path}: {e}") from e

        logging.debug(f"Wrote {len(buf.getvalue())} bytes with EXIF to {out_path}")
