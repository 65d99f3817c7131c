import os
import logging
from pathlib import Path
from typing import Iterable, Iterator, Tuple


def _absolute(path) -> Path:
    # Lexical only; symlinks inside the tree are left as they are
    return Path(os.path.abspath(path))


def is_hidden(path: Path, root: Path) -> bool:
    """True for dotfiles and anything inside a dot-directory below `root`."""
    try:
        parts = path.relative_to(root).parts
    except ValueError:
        parts = (path.name,)
    return any(part.startswith(".") for part in parts)


def is_within(path: Path, roots: Iterable[Path]) -> bool:
    """True if `path` is one of `roots` or lies below one of them."""
    return any(path == r or r in path.parents for r in roots)


class DiskScanner:
    """
    Decides which paths under the source tree are candidates for placement.

    Both drivers go through `accepts()`: the one-off walk and the watcher.
    Output trees nested in the source (destination, processed originals)
    are never candidates, otherwise placed copies would be picked up again.
    """

    def __init__(self, root: Path, skip_roots: Iterable[Path] = ()):
        self.root = _absolute(root)
        self.skip_roots: Tuple[Path, ...] = tuple(_absolute(p) for p in skip_roots if p is not None)

    def accepts(self, path: Path) -> bool:
        path = _absolute(path)
        return not is_hidden(path, self.root) and not is_within(path, self.skip_roots)

    def iter_files(self) -> Iterator[Path]:
        """Depth-first, lazily; directories and files in name order."""
        for dirpath, dirnames, filenames in os.walk(self.root, onerror=self._unreadable):
            current = Path(dirpath)
            # Pruning in place stops os.walk from descending into skipped trees
            dirnames[:] = sorted(d for d in dirnames if self.accepts(current / d))
            for name in sorted(filenames):
                path = current / name
                if self.accepts(path):
                    yield path

    def _unreadable(self, error: OSError) -> None:
        logging.warning(f"Cannot list {error.filename}: {error.strerror}")
