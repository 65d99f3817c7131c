import logging
import shutil
from pathlib import Path

from ..exceptions import PlacementError


class FileMover:
    """Filesystem side of placement: plain copies and archiving originals."""

    def copy(self, src: Path, dest: Path) -> None:
        logging.info(f"[COPY] {src} to {dest}")
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(str(src), str(dest))
        except OSError as e:
            raise PlacementError(f"Failed to copy {src} -> {dest}: {e}") from e

    def move_to_processed(self, src: Path, source_root: Path, processed_root: Path) -> Path:
        """
        Moves `src` into `processed_root`, mirroring its path under `source_root`.
        An existing file at the target is replaced.
        """
        try:
            relative = src.resolve().relative_to(source_root.resolve())
        except ValueError:
            relative = Path(src.name)
        target = processed_root / relative

        logging.info(f"[MOVE] {src} to {target}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if target.exists():
                target.unlink()
            shutil.move(str(src), str(target))
        except OSError as e:
            raise PlacementError(f"Failed to move {src} -> {target}: {e}") from e
        return target
