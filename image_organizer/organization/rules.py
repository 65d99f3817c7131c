import re
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, Optional, Sequence

from .. import config
from ..geo.geocoder import location_tag
from ..models import DestinationPlan, LocationRecord

INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


class PathBuilder:
    """
    Computes where a file goes:
        {dest_root}/YYYY/MM/DD[-City-CC]/{stem}[-tag1-tag2]{ext}
    """

    def __init__(self, dest_root: Path):
        self.dest_root = Path(dest_root)

    def plan(self,
             capture_date: datetime,
             location: Optional[LocationRecord],
             tags: Sequence[str],
             original_name: str) -> DestinationPlan:
        """Pure: the same inputs always give the same plan."""
        return DestinationPlan(
            directory=self.directory_for(capture_date, location),
            filename=self.filename_for(original_name, tags),
        )

    def directory_for(self, capture_date: datetime, location: Optional[LocationRecord]) -> Path:
        folder = config.DAY_FOLDER_PATTERN.format(
            year=capture_date.year, month=capture_date.month, day=capture_date.day
        )
        if location is not None:
            folder = f"{folder}-{location_tag(location)}"
        return self.dest_root / folder

    def filename_for(self, original_name: str, tags: Sequence[str]) -> str:
        suffix = "-".join(t for t in (self._clean_tag(tag) for tag in tags) if t)
        if not suffix:
            return original_name
        stem = Path(original_name).stem
        ext = Path(original_name).suffix
        return f"{stem}-{suffix}{ext}"

    def resolve_collision(self, plan: DestinationPlan) -> Path:
        """
        First free path among name, name_1, name_2, ...
        Every attempt hits the filesystem; callers racing on the same
        directory must hold DirectoryLocks for it until the file is written.
        """
        stem = Path(plan.filename).stem
        ext = Path(plan.filename).suffix
        candidate = plan.path
        counter = 1

        while candidate.exists():
            candidate = plan.directory / f"{stem}_{counter}{ext}"
            counter += 1

        return candidate

    def _clean_tag(self, tag: str) -> str:
        tag = INVALID_CHARS.sub("", tag).strip()
        return re.sub(r"\s+", "_", tag)


class DirectoryLocks:
    """
    One lock per destination directory while anyone holds or waits for it.
    An entry is dropped when its last holder leaves, so a long watch
    session does not keep a lock for every day folder it ever wrote.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # directory -> [lock, holders and waiters]
        self._locks: Dict[Path, list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, directory: Path) -> Iterator[None]:
        key = Path(directory)
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]
