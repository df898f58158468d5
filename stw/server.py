"""Development server for stw.

Serves the built site with live reload and sane defaults for local authoring:
- Streams a ``reload`` event to ``/__reload`` subscribers after each rebuild.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Builds into a staging directory so a failed rebuild keeps the last good output.

Key classes:
- DevServer: Main class for running the development server.
- _ReloadHandler: HTTP request handler that serves the site and the reload stream.
"""

from __future__ import annotations

import functools
import select
import shutil
import socket
import threading
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import urlsplit

from .build import BuildResult, SiteBuilder
from .protocols import Builder
from .reload import RELOAD_PATH, ClientRegistry
from .site import INDEX_FILE, Site
from .utils import replace_directory
from .watcher import WatchLoop


class _StreamClient:
    """Reload subscriber writing server-sent events to one response."""

    def __init__(self, wfile):
        self.wfile = wfile
        self.closed = threading.Event()

    def send(self, message: bytes) -> None:
        try:
            self.wfile.write(message)
            self.wfile.flush()
        except (OSError, ValueError):
            self.closed.set()
            raise


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler for the built site and the reload stream.

    Attributes:
        dev_server: Server owning the subscriber registry; set per server.
        poll_interval: Seconds between checks for a closed reload stream.
    """

    dev_server: DevServer | None = None
    poll_interval = 0.5

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._serve_404()

    def _serve_404(self):
        """Serve 404.html (when present) with a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            encoded = error_page.read_bytes()
            self.send_response(404)
            self.send_header("Content-type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(encoded)))
            self.end_headers()
            self.wfile.write(encoded)
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            if not (path_obj / INDEX_FILE).exists():
                return self._serve_404()
        elif not path_obj.exists():
            return self._serve_404()
        return super().send_head()

    def do_GET(self):
        if self._is_reload_request():
            self._stream_reload()
            return
        super().do_GET()

    def _is_reload_request(self) -> bool:
        server = self.dev_server
        if server is None or not server.site.enable_auto_reload:
            return False
        return urlsplit(self.path).path == RELOAD_PATH

    def _stream_reload(self) -> None:
        server = self.dev_server
        self.send_response(200)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Connection", "keep-alive")
        self.end_headers()
        self.wfile.flush()

        client = _StreamClient(self.wfile)
        server.clients.register(client)
        print(f"Client connected to {RELOAD_PATH}")
        try:
            while not client.closed.wait(self.poll_interval):
                if server.stopping or self._peer_closed():
                    break
        finally:
            server.clients.deregister(client)
        self.close_connection = True

    def _peer_closed(self) -> bool:
        # EventSource never sends after the request, so a readable socket is EOF
        try:
            readable, _, _ = select.select([self.connection], [], [], 0)
            if not readable:
                return False
            return self.connection.recv(1, socket.MSG_PEEK) == b""
        except (OSError, ValueError):
            return True


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        site: Site being served; ``enable_auto_reload`` turns on watching.
        builder: Builder run for the initial build and every rebuild.
        port: Port for the HTTP server.
        output_dir: Directory served to browsers.
        clients: Connected reload subscribers.
    """

    def __init__(self, site: Site, builder: Builder | None = None, port: int = 8080):
        self.site = site
        self.builder = builder or SiteBuilder(site)
        self.port = port
        self.output_dir = site.dist_dir
        self._staging_dir = self.output_dir.with_suffix(self.output_dir.suffix + ".staging")
        self.clients = ClientRegistry()
        self._watcher: WatchLoop | None = None
        self._stopping = threading.Event()
        self._build_lock = threading.Lock()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    def serve(self) -> None:
        """Build, then serve until interrupted.

        Raises:
            BuildError: If the initial build fails; nothing is served then.
        """
        self._build()
        httpd = self.create_http_server()
        if self.site.enable_auto_reload:
            self._start_watcher()
        print(f"Serving {self.output_dir} on http://localhost:{self.port}")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            print("Shutting down")
        finally:
            self.stop()
            httpd.server_close()

    def create_http_server(self) -> ThreadingHTTPServer:
        """Bind the HTTP server for ``output_dir`` on ``port``."""
        handler_cls = type(
            "_ReloadHandlerForSite",
            (_ReloadHandler,),
            {"dev_server": self},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        return ThreadingHTTPServer(("", self.port), handler)

    def _start_watcher(self) -> None:
        self._watcher = WatchLoop(
            self.site,
            self.rebuild,
            ignored=(self.output_dir, self._staging_dir),
        )
        self._watcher.start()

    def stop(self) -> None:
        self._stopping.set()
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    def rebuild(self) -> bool:
        """Rebuild the site and notify reload subscribers on success.

        Returns:
            True if the build succeeded.
        """
        try:
            result = self._build()
        except Exception as exc:
            print(f"Build error: {exc}")
            return False
        notified = self.clients.broadcast()
        print(f"Rebuilt {len(result.pages)} pages. Notifying {notified} clients")
        return True

    def _build(self) -> BuildResult:
        with self._build_lock:
            staging = self._staging_dir
            if staging.exists():
                shutil.rmtree(staging)
            try:
                result = self.builder.build(staging)
            except BaseException:
                shutil.rmtree(staging, ignore_errors=True)
                raise
            replace_directory(staging, self.output_dir)
            result.output_dir = self.output_dir
            return result
