from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .gen.config import Settings
from .gen.provider import ImageProvider
from .gen.registry import ProviderRegistry
from .io import is_excluded, is_source_file
from .scan import FileResult, process_file, scan

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.3

ProcessFn = Callable[[Path], object]


class _SourceEventHandler(FileSystemEventHandler):
    def __init__(self, watcher: "ChangeWatcher"):
        super().__init__()
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.notify(Path(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.notify(Path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.notify(Path(event.dest_path))


class ChangeWatcher:
    """Re-runs the single-file pipeline for source files as they change.

    Each path is debounced on its own timer. Processing is serialized across
    paths by one lock, and a path that is being processed ignores new events.
    """

    def __init__(
        self,
        root_dir: Path,
        settings: Settings,
        debounce: float = DEFAULT_DEBOUNCE,
        process: Optional[ProcessFn] = None,
        write: Optional[bool] = None,
        provider: Optional[ImageProvider] = None,
    ):
        self.root_dir = root_dir
        self.settings = settings
        self.debounce = debounce
        self.write = settings.write_back if write is None else write
        self._provider = provider
        self._registry: Optional[ProviderRegistry] = None
        self._process = process or self._process_file

        self._timers: dict[Path, threading.Timer] = {}
        self._processing: set[Path] = set()
        self._state_lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._observer: Optional[Observer] = None

    @property
    def provider(self) -> ImageProvider:
        if self._provider is None:
            self._registry = ProviderRegistry(self.settings)
            self._provider = self._registry.get_default_provider()
        return self._provider

    def _process_file(self, path: Path) -> FileResult:
        return process_file(
            path, self.settings, generate=True, write=self.write, provider=self.provider
        )

    def accepts(self, path: Path) -> bool:
        return is_source_file(path) and not is_excluded(path, self.root_dir)

    def pending(self) -> set[Path]:
        with self._state_lock:
            return set(self._timers)

    def notify(self, path: Path) -> None:
        """Record a change event for ``path`` and (re)start its debounce timer."""
        if not self.accepts(path):
            return

        with self._state_lock:
            if path in self._processing:
                logger.debug(f"Ignoring event for {path}: already processing")
                return
            existing = self._timers.get(path)
            if existing is not None:
                existing.cancel()
            timer = threading.Timer(self.debounce, self._fire)
            timer.args = (path, timer)
            timer.daemon = True
            self._timers[path] = timer
            timer.start()

    def _fire(self, path: Path, timer: threading.Timer) -> None:
        with self._state_lock:
            if self._timers.get(path) is not timer:
                return
            del self._timers[path]
            self._processing.add(path)

        try:
            with self._run_lock:
                logger.info(f"File changed: {path}")
                self._process(path)
        except Exception:
            logger.exception(f"Error processing {path}")
        finally:
            with self._state_lock:
                self._processing.discard(path)

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(_SourceEventHandler(self), str(self.root_dir), recursive=True)
        observer.start()
        self._observer = observer
        logger.info(f"Watching for changes in {self.root_dir}")

    def stop(self) -> None:
        with self._state_lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()

        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

        if self._registry is not None:
            self._registry.close()
            self._registry = None

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """Scan once with generation, then watch until interrupted or ``stop_event`` is set."""
        scan(self.root_dir, self.settings, generate=True, write=self.write, provider=self.provider)
        self.start()
        stop_event = stop_event or threading.Event()
        try:
            while not stop_event.wait(0.5):
                pass
        except KeyboardInterrupt:
            logger.info("Stopping watcher")
        finally:
            self.stop()
