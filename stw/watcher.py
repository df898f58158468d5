"""Source watching for the stw development server.

A watchdog observer reports changes to the page, template and asset trees
and to the configuration file. The events are queued and consumed by a
background loop that reloads the configuration when it changed, then asks
for a rebuild. Bursts of events are coalesced into a single rebuild.

Key classes:
- WatchLoop: Background task owning the observer and its stop token.
- _ChangeHandler: watchdog handler that filters and queues events.
"""

from __future__ import annotations

import os
import queue
import threading
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import ConfigError
from .site import Site

RELEVANT_EVENTS = frozenset({"created", "modified", "deleted", "moved"})


def _is_within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


def _event_paths(event: FileSystemEvent) -> list[Path]:
    paths = [Path(os.fsdecode(event.src_path))]
    dest = getattr(event, "dest_path", "")
    if dest:
        paths.append(Path(os.fsdecode(dest)))
    return paths


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, loop: WatchLoop):
        super().__init__()
        self.loop = loop

    def on_any_event(self, event):
        if self.loop.is_relevant(event):
            self.loop.enqueue(event)


class WatchLoop:
    """Rebuilds the site whenever its sources change.

    The loop runs on its own thread until ``stop()`` is called or the
    observer dies. Rebuild and config errors are reported and never end it.

    Attributes:
        site: Site whose sources are watched and whose config is reloaded.
        rebuild: Callback running a rebuild; returns True on success.
        debounce_seconds: Window in which further events join a rebuild.
        poll_interval: How often the loop checks its stop token.
    """

    def __init__(
        self,
        site: Site,
        rebuild: Callable[[], bool],
        ignored: Iterable[Path] = (),
        debounce_seconds: float = 0.05,
        poll_interval: float = 0.2,
    ):
        self.site = site
        self.rebuild = rebuild
        self.debounce_seconds = debounce_seconds
        self.poll_interval = poll_interval
        self._source_dirs = [
            Path(folder).resolve()
            for folder in (site.pages_dir, site.templates_dir, site.assets_dir)
        ]
        self._config_path = Path(site.config_path).resolve()
        self._ignored = [Path(folder).resolve() for folder in ignored]
        self._events: queue.Queue[FileSystemEvent | None] = queue.Queue()
        self._stop = threading.Event()
        self._watched: list[Path] = []
        self._observer = None
        self._handler = _ChangeHandler(self)
        self._thread: threading.Thread | None = None

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def start(self) -> threading.Thread:
        """Start the observer and the loop thread."""
        self._start_observer()
        thread = threading.Thread(target=self.run, name="stw-watch", daemon=True)
        thread.start()
        self._thread = thread
        return thread

    def stop(self) -> None:
        """Cancel the loop and stop the observer."""
        self._stop.set()
        self._events.put(None)
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()

    def _start_observer(self) -> None:
        self._observer = Observer()
        for folder in self._source_dirs:
            if folder.exists():
                self._schedule(folder, recursive=True)
            else:
                print(f"Watcher error: {folder} does not exist; not watching it")
        if self._config_path.exists():
            self._schedule(self._config_path.parent, recursive=False)
        self._observer.start()

    def _schedule(self, folder: Path, recursive: bool) -> None:
        try:
            self._observer.schedule(self._handler, str(folder), recursive=recursive)
        except OSError as exc:
            print(f"Watcher error: could not watch {folder}: {exc}")
            return
        if recursive:
            self._watched.append(folder)

    def is_relevant(self, event: FileSystemEvent) -> bool:
        """Return True if ``event`` should trigger a rebuild."""
        if event.event_type not in RELEVANT_EVENTS:
            return False
        if event.is_directory and event.event_type == "modified":
            return False
        for path in _event_paths(event):
            if "node_modules" in path.parts:
                continue
            if any(_is_within(path, ignored) for ignored in self._ignored):
                continue
            if path == self._config_path:
                return True
            if any(_is_within(path, root) for root in self._source_dirs):
                return True
        return False

    def enqueue(self, event: FileSystemEvent) -> None:
        self._events.put(event)

    def run(self) -> None:
        """Consume queued events until stopped."""
        while not self._stop.is_set():
            try:
                event = self._events.get(timeout=self.poll_interval)
            except queue.Empty:
                if self._observer is not None and not self._observer.is_alive():
                    print("Watcher error: file system observer stopped")
                    return
                continue
            if event is None:
                continue
            self.process(self._collect(event))

    def _collect(self, first: FileSystemEvent) -> list[FileSystemEvent]:
        batch = [first]
        deadline = time.monotonic() + self.debounce_seconds
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                event = self._events.get(timeout=remaining)
            except queue.Empty:
                break
            if event is not None:
                batch.append(event)
        return batch

    def process(self, events: list[FileSystemEvent]) -> bool:
        """Handle a batch of relevant events.

        Returns:
            True if a rebuild ran and succeeded.
        """
        changed: list[str] = []
        config_changed = False
        for event in events:
            paths = _event_paths(event)
            if any(path == self._config_path for path in paths):
                config_changed = True
            if event.is_directory and event.event_type == "created":
                self._watch_directory(paths[0])
            changed.extend(str(path) for path in paths)

        if config_changed:
            try:
                self.site.reload_config()
            except ConfigError as exc:
                print(f"Config reload error: {exc}")
                return False

        print(f"Change detected: {', '.join(sorted(set(changed)))}")
        try:
            return self.rebuild()
        except Exception as exc:
            print(f"Build error: {exc}")
            return False

    def _watch_directory(self, folder: Path) -> None:
        if any(_is_within(folder, root) for root in self._watched):
            return
        if self._observer is None:
            return
        self._schedule(folder, recursive=True)
