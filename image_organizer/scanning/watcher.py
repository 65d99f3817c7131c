import logging
import queue
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Set

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.utils import platform

from .. import config
from ..exceptions import WatchError
from .filesystem import DiskScanner

# Placed on the queue once per worker to stop it
_STOP = None


def wait_until_stable(path: Path, interval: float, timeout: float) -> bool:
    """Polls size and mtime until two reads agree. False if the file vanished or kept changing."""
    deadline = time.monotonic() + timeout
    last = None
    while True:
        try:
            st = path.stat()
        except OSError:
            return False
        current = (st.st_size, st.st_mtime_ns)
        if current == last:
            return True
        if time.monotonic() >= deadline:
            return False
        last = current
        time.sleep(interval)


class NewFileHandler(FileSystemEventHandler):
    """
    Queues paths of files that are complete in the watched tree.

    With inotify a file is reported once its writer closes it; `created`
    fires on open, while the file may still be empty. Other platforms
    have no close event, so `created` is used and the service waits for
    the size to settle instead.
    """

    def __init__(self,
                 scanner: DiskScanner,
                 enqueue: Callable[[Path], object],
                 use_close_events: Optional[bool] = None):
        super().__init__()
        self.scanner = scanner
        self.enqueue = enqueue
        self.use_close_events = platform.is_linux() if use_close_events is None else use_close_events

    def on_created(self, event) -> None:
        if not event.is_directory and not self.use_close_events:
            self._queue(event.src_path)

    def on_closed(self, event) -> None:
        if not event.is_directory:
            self._queue(event.src_path)

    def on_moved(self, event) -> None:
        # A rename into the tree carries a finished file
        if not event.is_directory:
            self._queue(event.dest_path)

    def _queue(self, raw_path) -> None:
        path = Path(raw_path.decode() if isinstance(raw_path, bytes) else raw_path)
        if not self.scanner.accepts(path):
            return
        logging.info(f"New file detected: {path}")
        self.enqueue(path)


class WatchService:
    """
    Bounded work queue in front of a fixed pool of worker threads.
    Each worker runs the whole per-file pipeline for one path at a time.
    """

    def __init__(self,
                 scanner: DiskScanner,
                 process: Callable[[Path], object],
                 workers: int = config.DEFAULT_WORKERS,
                 queue_size: int = config.WATCH_QUEUE_SIZE,
                 enqueue_timeout: float = config.WATCH_ENQUEUE_TIMEOUT,
                 use_close_events: Optional[bool] = None,
                 settle_seconds: Optional[float] = None,
                 observer_factory: Callable[[], object] = Observer,
                 max_restarts: int = config.WATCH_MAX_RESTARTS,
                 restart_delay: float = config.WATCH_RESTART_DELAY):
        self.scanner = scanner
        self.root = scanner.root
        self.process = process
        self.worker_count = max(1, workers)
        self.enqueue_timeout = enqueue_timeout
        self.handler = NewFileHandler(scanner, self.submit, use_close_events)
        if settle_seconds is None:
            settle_seconds = 0.0 if self.handler.use_close_events else config.WATCH_SETTLE_SECONDS
        self.settle_seconds = settle_seconds
        self.observer_factory = observer_factory
        self.max_restarts = max_restarts
        self.restart_delay = restart_delay

        self.queue: "queue.Queue[Optional[Path]]" = queue.Queue(maxsize=queue_size)
        self.threads: List[threading.Thread] = []
        self.observer = None
        self._pending: Set[Path] = set()
        self._pending_lock = threading.Lock()

    def submit(self, path: Path) -> bool:
        with self._pending_lock:
            if path in self._pending:
                logging.debug(f"Already queued: {path}")
                return False
            self._pending.add(path)
        try:
            self.queue.put(path, timeout=self.enqueue_timeout)
            return True
        except queue.Full:
            with self._pending_lock:
                self._pending.discard(path)
            logging.error(f"Work queue full, dropping {path}")
            return False

    def start_workers(self) -> None:
        for i in range(self.worker_count):
            t = threading.Thread(target=self._worker, name=f"organizer-worker-{i}", daemon=True)
            t.start()
            self.threads.append(t)

    def start(self) -> None:
        self.start_workers()
        self._start_observer()
        logging.info(f"Watching for new files in: {self.root}")

    def _start_observer(self) -> None:
        observer = self.observer_factory()
        observer.schedule(self.handler, str(self.root), recursive=True)
        observer.start()
        self.observer = observer

    def stop(self) -> None:
        """Stops the observer, lets workers finish queued paths, then joins them."""
        if self.observer is not None:
            self.observer.stop()
            if self.observer.is_alive():
                self.observer.join()
            self.observer = None
        for _ in self.threads:
            self.queue.put(_STOP)
        for t in self.threads:
            t.join()
        self.threads = []

    def run_forever(self, poll_interval: float = 1.0) -> None:
        """
        Blocks until interrupted. A dead observer is restarted; after
        `max_restarts` failures WatchError is raised.
        """
        self.start()
        restarts = 0
        try:
            while True:
                self.observer.join(poll_interval)
                if self.observer.is_alive():
                    continue

                restarts += 1
                if restarts > self.max_restarts:
                    raise WatchError(f"File watcher on {self.root} stopped {restarts} times, giving up")
                logging.error(f"File watcher stopped unexpectedly, restarting ({restarts}/{self.max_restarts})")
                time.sleep(self.restart_delay)
                try:
                    self._start_observer()
                except OSError as e:
                    logging.error(f"Cannot restart file watcher: {e}")
        except KeyboardInterrupt:
            logging.warning("Watch interrupted by user.")
        finally:
            self.stop()

    def _worker(self) -> None:
        while True:
            path = self.queue.get()
            try:
                if path is _STOP:
                    return
                with self._pending_lock:
                    self._pending.discard(path)
                if self.settle_seconds and not wait_until_stable(
                        path, self.settle_seconds, config.WATCH_SETTLE_TIMEOUT):
                    logging.warning(f"[SKIP] {path} (missing or still being written)")
                    continue
                self.process(path)
            except Exception:
                logging.exception(f"Unexpected error while processing {path}")
            finally:
                self.queue.task_done()
