import io

import piexif
import pytest
from PIL import Image

from image_organizer.enrichment.client import Enrichment, normalize_keywords
from image_organizer.geo.geocoder import Geocoder
from image_organizer.geo.locations import LocationIndex
from image_organizer.metadata.extract import VideoInfo, empty_block
from image_organizer.models import LocationRecord
from image_organizer.organization.processor import MediaProcessor
from image_organizer.organization.rules import PathBuilder

PARIS = LocationRecord("Paris", "FR", 48.8566, 2.3522)
LONDON = LocationRecord("London", "GB", 51.5072, -0.1275)
TOKYO = LocationRecord("Tokyo", "JP", 35.6897, 139.6922)


def jpeg_bytes(exif=None, color="red"):
    """A small real JPEG, optionally carrying an EXIF block built with piexif."""
    buf = io.BytesIO()
    with Image.new("RGB", (16, 16), color=color) as im:
        im.save(buf, "JPEG")
    data = buf.getvalue()
    if exif:
        block = empty_block()
        for ifd, tags in exif.items():
            block[ifd].update(tags)
        out = io.BytesIO()
        piexif.insert(piexif.dump(block), data, out)
        data = out.getvalue()
    return data


@pytest.fixture
def make_jpeg():
    return jpeg_bytes


@pytest.fixture
def cities_csv(tmp_path):
    p = tmp_path / "worldcities.csv"
    p.write_text(
        "city,city_ascii,lat,lng,country,iso2\n"
        "Paris,Paris,48.8566,2.3522,France,FR\n"
        "London,London,51.5072,-0.1275,United Kingdom,GB\n"
        "Broken,Broken,notanumber,1.0,Nowhere,XX\n"
        ",Nameless,1.0,1.0,Nowhere,XX\n"
        "Tokyo,Tokyo,35.6897,139.6922,Japan,JP\n",
        encoding="utf-8",
    )
    return p


@pytest.fixture
def location_index():
    return LocationIndex([PARIS, LONDON, TOKYO])


class FakeEnricher:
    def __init__(self, keywords="Beach, Sunset, Family", caption="A family on the beach at sunset"):
        self.result = Enrichment(normalize_keywords(keywords), caption)
        self.calls = 0

    def enrich(self, image_bytes):
        self.calls += 1
        return self.result


class FakeProbe:
    def __init__(self):
        self.probed = []

    def probe(self, path):
        self.probed.append(path)
        return VideoInfo(duration_sec=3.0, container_format="MPEG-4")


@pytest.fixture
def dirs(tmp_path):
    src = tmp_path / "src"
    dest = tmp_path / "dest"
    src.mkdir()
    return src, dest


@pytest.fixture
def make_processor(dirs, location_index):
    """Builds a MediaProcessor over tmp src/dest trees; keyword overrides pass through."""
    src, dest = dirs

    def _make(**kwargs):
        kwargs.setdefault("video_probe", FakeProbe())
        return MediaProcessor(
            source_root=src,
            path_builder=PathBuilder(dest),
            geocoder=Geocoder(location_index),
            **kwargs,
        )

    return _make
