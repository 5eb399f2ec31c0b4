from __future__ import annotations

import http.server
import os
import queue
import sys
import threading
import time
from functools import partial
from http import HTTPStatus
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Optional
from urllib.parse import unquote, urlsplit

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .builder import build_site, summarize
from .config import SiteConfig
from .render import LIVERELOAD_PATH, inject_reload_script
from .utils import staging_dir

IDLE = "idle"
DEBOUNCE_PENDING = "debounce-pending"
BUILDING = "building"
KEEPALIVE_SECONDS = 15.0
IGNORED_SUFFIXES = ("~", ".swp", ".tmp", ".lock")
WATCHED_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}


def is_ignored(relative_path: str) -> bool:
    parts = PurePosixPath(relative_path.replace("\\", "/")).parts
    if not parts:
        return False
    if any(part.startswith(".") for part in parts):
        return True
    name = parts[-1]
    if name.endswith(IGNORED_SUFFIXES):
        return True
    return len(name) > 1 and name.startswith("#") and name.endswith("#")


class RebuildScheduler:
    """Debounced rebuild loop with three states: idle, debounce-pending, building.

    ``notify`` (re)starts the debounce timer, so a burst of change events
    collapses into one rebuild. When the timer expires the build runs, then
    ``on_success`` is called if it did not raise. Builds are serialised: a
    timer that expires during a build waits for it to finish.
    """

    def __init__(
        self,
        rebuild: Callable[[], object],
        on_success: Callable[[], object],
        delay: float = 0.12,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        self.rebuild = rebuild
        self.on_success = on_success
        self.delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._build_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._waiting = 0
        self._state = IDLE

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    def _set_state(self, state: str) -> None:
        self._state = state

    def notify(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            timer = self._timer_factory(self.delay, self._expire, args=(self._generation,))
            timer.daemon = True
            self._timer = timer
            if self._state == IDLE:
                self._set_state(DEBOUNCE_PENDING)
        timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1
            if self._state == DEBOUNCE_PENDING and not self._waiting:
                self._set_state(IDLE)

    def _expire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            self._waiting += 1
        with self._build_lock:
            with self._lock:
                self._waiting -= 1
                self._set_state(BUILDING)
            try:
                if self._run_build():
                    self.on_success()
            finally:
                with self._lock:
                    # A timer that expired during this build is blocked on the build lock.
                    pending = self._timer is not None or self._waiting > 0
                    self._set_state(DEBOUNCE_PENDING if pending else IDLE)

    def _run_build(self) -> bool:
        try:
            self.rebuild()
        except Exception as exc:
            print(f"Build error: {exc}", file=sys.stderr)
            return False
        return True


class ReloadHub:
    """Open live-reload streams, one queue per connected viewer."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: set[queue.Queue] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> queue.Queue:
        channel: queue.Queue = queue.Queue()
        with self._lock:
            self._subscribers.add(channel)
        return channel

    def unsubscribe(self, channel: queue.Queue) -> None:
        with self._lock:
            self._subscribers.discard(channel)

    def broadcast(self) -> int:
        event = f"event: reload\ndata: {int(time.time() * 1000)}\n\n"
        with self._lock:
            channels = list(self._subscribers)
        for channel in channels:
            channel.put(event)
        return len(channels)

    def close(self) -> None:
        with self._lock:
            channels = list(self._subscribers)
            self._subscribers.clear()
        for channel in channels:
            channel.put(None)


class DevRequestHandler(http.server.SimpleHTTPRequestHandler):
    keepalive = KEEPALIVE_SECONDS

    def __init__(self, *args, hub: ReloadHub, directory: str, **kwargs) -> None:
        self.hub = hub
        super().__init__(*args, directory=directory, **kwargs)

    def do_GET(self) -> None:
        url_path = unquote(urlsplit(self.path).path)
        if url_path == LIVERELOAD_PATH:
            self.stream_reload_events()
            return
        local_path = Path(self.translate_path(self.path))
        if local_path.is_file():
            super().do_GET()
            return
        if url_path.endswith("/") or not PurePosixPath(url_path).suffix:
            self.send_page_with_reload(local_path / "index.html")
            return
        self.send_error(HTTPStatus.NOT_FOUND, "Not Found")

    def send_page_with_reload(self, index_path: Path) -> None:
        try:
            text = index_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            self.send_error(HTTPStatus.NOT_FOUND, "Not Found")
            return
        body = inject_reload_script(text).encode("utf-8")
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-cache")
        self.end_headers()
        self.wfile.write(body)

    def stream_reload_events(self) -> None:
        channel = self.hub.subscribe()
        try:
            self.send_response(HTTPStatus.OK)
            self.send_header("Content-Type", "text/event-stream")
            self.send_header("Cache-Control", "no-cache")
            self.send_header("Connection", "keep-alive")
            self.end_headers()
            self.wfile.write(b"\n")
            self.wfile.flush()
            while True:
                try:
                    event = channel.get(timeout=self.keepalive)
                except queue.Empty:
                    event = ": keepalive\n\n"
                if event is None:
                    break
                self.wfile.write(event.encode("utf-8"))
                self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            # Viewer closed the page.
            pass
        finally:
            self.hub.unsubscribe(channel)
            self.close_connection = True

    def list_directory(self, path):
        self.send_error(HTTPStatus.NOT_FOUND, "Not Found")
        return None

    def log_message(self, format: str, *args) -> None:
        if getattr(self, "path", "") != LIVERELOAD_PATH:
            super().log_message(format, *args)


class SourceChangeHandler(FileSystemEventHandler):
    def __init__(self, scheduler: RebuildScheduler, root: Path, exclude: Iterable[Path] = ()) -> None:
        super().__init__()
        self.scheduler = scheduler
        self.root = root.resolve()
        self.exclude = [path.resolve() for path in exclude]

    def relevant(self, raw_path: object) -> bool:
        if not raw_path:
            return False
        path = Path(os.fsdecode(raw_path)).resolve()
        if any(path == excluded or excluded in path.parents for excluded in self.exclude):
            return False
        try:
            relative = path.relative_to(self.root).as_posix()
        except ValueError:
            relative = path.name
        return not is_ignored(relative)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in WATCHED_EVENTS:
            return
        if event.is_directory and event.event_type == EVENT_TYPE_MODIFIED:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        changed = [os.fsdecode(path) for path in paths if self.relevant(path)]
        if not changed:
            return
        print(f"Changed: {changed[-1]}")
        self.scheduler.notify()


def create_server(config: SiteConfig, hub: ReloadHub) -> http.server.ThreadingHTTPServer:
    handler = partial(DevRequestHandler, hub=hub, directory=str(config.output_dir))
    return http.server.ThreadingHTTPServer((config.host, config.port), handler)


def build_and_report(config: SiteConfig) -> None:
    print("Rebuilding...")
    report = build_site(config)
    print(summarize(report))


def watch_roots(config: SiteConfig) -> list[Path]:
    """Directories to watch: the source root plus any configured root outside it."""
    roots: list[Path] = []
    candidates = [config.source_dir, config.pages_dir, config.layouts_dir, config.partials_dir, config.assets_dir]
    for candidate in sorted((path.resolve() for path in candidates), key=lambda p: len(p.parts)):
        if any(candidate == root or root in candidate.parents for root in roots):
            continue
        roots.append(candidate)
    return roots


def run_dev(config: SiteConfig) -> int:
    print("Building...")
    try:
        print(summarize(build_site(config)))
    except Exception as exc:
        print(f"Initial build failed: {exc}", file=sys.stderr)

    hub = ReloadHub()
    scheduler = RebuildScheduler(partial(build_and_report, config), hub.broadcast, delay=config.debounce)
    try:
        server = create_server(config, hub)
    except OSError as exc:
        print(f"Cannot start dev server on {config.host}:{config.port}: {exc}", file=sys.stderr)
        return 1

    config.source_dir.mkdir(parents=True, exist_ok=True)
    exclude = [config.output_dir, staging_dir(config.output_dir)]
    observer = Observer()
    watched = []
    for root in watch_roots(config):
        if not root.is_dir():
            print(f"Not watching {root}: directory does not exist", file=sys.stderr)
            continue
        observer.schedule(SourceChangeHandler(scheduler, root, exclude=exclude), str(root), recursive=True)
        watched.append(str(root))
    observer.start()

    host, port = server.server_address[:2]
    display_host = "localhost" if host in {"", "0.0.0.0", "127.0.0.1"} else host
    print(f"\nDev server: http://{display_host}:{port}")
    print(f"Watching {', '.join(watched)} for changes...\n")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nStopped.")
    finally:
        observer.stop()
        scheduler.cancel()
        hub.close()
        server.server_close()
        observer.join()
    return 0
