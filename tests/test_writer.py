import struct
from datetime import datetime

import piexif
import pytest

from image_organizer.exceptions import PlacementError
from image_organizer.metadata.extract import MetadataResolver, empty_block, load_block
from image_organizer.metadata.writer import (
    MetadataWriter, add_coordinates, add_tags, decimal_to_dms, decode_xp_text, encode_xp_text,
)
from image_organizer.models import Coordinates


def jpeg_payload(data: bytes) -> bytes:
    """Everything after SOI and the APPn header segments."""
    i = 2
    while data[i] == 0xFF and 0xE0 <= data[i + 1] <= 0xEF:
        length = struct.unpack(">H", data[i + 2:i + 4])[0]
        i += 2 + length
    return data[i:]


def test_round_trip_gps_and_keywords(make_jpeg, tmp_path):
    original = make_jpeg(color="blue")
    out = tmp_path / "out" / "photo.jpg"

    block = load_block(original)
    add_coordinates(block, Coordinates(-33.8688, 151.2093))
    add_tags(block, ["beach", "family", "sunset"], "A family on the beach")
    MetadataWriter().write(original, block, out)

    written = out.read_bytes()
    res = MetadataResolver().resolve(written, datetime(2024, 1, 1))
    assert res.coordinates.latitude == pytest.approx(-33.8688, abs=1e-4)
    assert res.coordinates.longitude == pytest.approx(151.2093, abs=1e-4)

    reloaded = load_block(written)
    keywords = decode_xp_text(reloaded["0th"][piexif.ImageIFD.XPKeywords])
    assert set(keywords.split(", ")) == {"beach", "family", "sunset"}
    assert decode_xp_text(reloaded["0th"][piexif.ImageIFD.XPTitle]) == "A family on the beach"

    assert jpeg_payload(written) == jpeg_payload(original)


def test_rewrite_keeps_existing_fields(make_jpeg, tmp_path):
    original = make_jpeg({"Exif": {piexif.ExifIFD.DateTimeOriginal: "2023:12:25 08:00:00"}})
    out = tmp_path / "photo.jpg"

    block = load_block(original)
    add_tags(block, ["snow"])
    MetadataWriter().write(original, block, out)

    res = MetadataResolver().resolve(out.read_bytes(), datetime(2024, 1, 1))
    assert res.capture_date == datetime(2023, 12, 25, 8, 0, 0)
    assert jpeg_payload(out.read_bytes()) == jpeg_payload(original)


def test_xp_text_is_utf16le():
    value = encode_xp_text("été")
    assert bytes(value) == "été".encode("utf-16le")
    assert decode_xp_text(value + (0, 0)) == "été"


def test_add_tags_without_tags_leaves_keywords_unset():
    block = empty_block()
    add_tags(block, [], caption="Just a caption")

    assert piexif.ImageIFD.XPKeywords not in block["0th"]
    assert piexif.ImageIFD.XPTitle in block["0th"]


def test_decimal_to_dms():
    (deg, _), (minutes, _), (sec, den) = decimal_to_dms(-48.8566)
    assert (deg, minutes) == (48, 51)
    assert sec / den == pytest.approx(23.76, abs=0.01)


def test_write_rejects_non_jpeg(tmp_path):
    out = tmp_path / "x.jpg"
    with pytest.raises(PlacementError):
        MetadataWriter().write(b"not a jpeg", empty_block(), out)
    assert not out.exists()
