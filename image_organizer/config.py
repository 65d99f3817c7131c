"""
Configuration constants for the image organizer.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# --- File Type Definitions ---
JPEG_EXTS = {'.jpg', '.jpeg', '.jfif'}
OTHER_IMAGE_EXTS = {'.heic', '.png', '.webp'}
VIDEO_EXTS = {'.mp4', '.avi', '.mov'}

# Extension to Format Mapping
# Anything not listed here is unsupported and skipped
EXT_TO_FORMAT = {}
for ext in JPEG_EXTS: EXT_TO_FORMAT[ext] = 'jpeg_like'
for ext in OTHER_IMAGE_EXTS: EXT_TO_FORMAT[ext] = 'other_image'
for ext in VIDEO_EXTS: EXT_TO_FORMAT[ext] = 'video_container'

# --- Metadata Parsing ---
EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

# Read in ascending priority: a later tag overrides an earlier one
DATE_TAGS = [
    'EXIF DateTimeDigitized',
    'EXIF DateTimeOriginal',
]

# --- Reference Locations ---
DEFAULT_CITIES_PATH = Path("worldcities.csv")
CITY_COLUMN = 'city'
LAT_COLUMN = 'lat'
LNG_COLUMN = 'lng'
COUNTRY_COLUMNS = ('iso2', 'country_iso2')

# --- Enrichment ---
DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_MODEL = "llava"
DEFAULT_ENRICH_TIMEOUT = 50.0  # seconds, per request

KEYWORDS_PROMPT = (
    "You are an expert in picture classification and categorization. "
    "Provide a list of 6 keywords, only keywords and no comments. "
    "keywords will be seperated by commas, on a single line. "
    "it will be used as tags to classify pictures in a database"
)
CAPTION_PROMPT = (
    "give a caption title to the picture, providing an accurate description. "
    "Only one sentence, 120 characters maximum"
)

# --- Organization ---
DAY_FOLDER_PATTERN = "{year:04d}/{month:02d}/{day:02d}"

# --- Watch Mode ---
DEFAULT_WORKERS = 2
WATCH_QUEUE_SIZE = 256
WATCH_ENQUEUE_TIMEOUT = 30.0  # seconds before a new path is dropped
WATCH_SETTLE_SECONDS = 1.0  # size poll interval where no close event exists
WATCH_SETTLE_TIMEOUT = 300.0
WATCH_MAX_RESTARTS = 5
WATCH_RESTART_DELAY = 2.0

LOG_FILENAME = "organizer.log"


@dataclass
class OrganizerSettings:
    """Run-time options gathered from the command line."""
    source_dir: Path
    dest_dir: Path
    processed_dir: Optional[Path] = None
    use_ollama: bool = False
    ollama_url: str = DEFAULT_OLLAMA_URL
    model: str = DEFAULT_MODEL
    timeout: float = DEFAULT_ENRICH_TIMEOUT
    set_gps: Optional[str] = None
    watch: bool = False
    cities_path: Path = DEFAULT_CITIES_PATH
    workers: int = DEFAULT_WORKERS
