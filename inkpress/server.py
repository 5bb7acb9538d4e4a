"""Development server for Inkpress.

``inkpress serve`` builds the site, serves the output directory over HTTP and
rebuilds when a file under the source directory, the data directory or
``inkpress.yaml`` changes. Open browser tabs are told to reload over a
websocket once the new build is in place.

Each build is written to a staging directory that replaces the output only
when the build is complete, so a request never sees a half-written site.

Key classes:
- DevServer: Builds, serves and rebuilds a project.
- SiteRequestHandler: Serves built files, adding the reload snippet to HTML.
- ReloadHub: Websocket endpoint that pushes reload messages.
- SourceWatcher: Turns filesystem events on site inputs into rebuilds.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import threading
import time
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import click
import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import CONFIG_FILENAME, BuildResult, build_site, load_config

logger = logging.getLogger(__name__)

RELOAD_SNIPPET = """<script>
(() => {{
  const socket = new WebSocket("ws://" + location.hostname + ":{port}");
  socket.addEventListener("message", (event) => {{
    if (JSON.parse(event.data).type === "reload") location.reload();
  }});
}})();
</script>
"""


def inject_reload(html: str, snippet: str) -> str:
    """Insert the reload snippet before the last ``</body>``, or append it."""
    index = html.lower().rfind("</body>")
    if index == -1:
        return html + snippet
    return html[:index] + snippet + html[index:]


class SiteRequestHandler(SimpleHTTPRequestHandler):
    """Serves the built site.

    Directory URLs serve their ``index.html``. A URL that maps to no file is
    a 404, rendered from the site's own ``404.html`` when it has one;
    directory listings are never produced.
    """

    snippet = ""

    def end_headers(self):
        self.send_header("Cache-Control", "no-store")
        super().end_headers()

    def resolve(self) -> Path | None:
        """Return the file a request maps to, or None if there is none."""
        target = Path(self.translate_path(self.path))
        if target.is_dir():
            target = target / "index.html"
        return target if target.is_file() else None

    def send_head(self):
        target = self.resolve()
        if target is None:
            return self.send_not_found()
        if target.suffix.lower() in (".html", ".htm"):
            self.send_page(HTTPStatus.OK, target)
            return None
        return super().send_head()

    def list_directory(self, path):
        return self.send_not_found()

    def send_not_found(self):
        error_page = Path(self.directory) / "404.html"
        if error_page.is_file():
            self.send_page(HTTPStatus.NOT_FOUND, error_page)
        else:
            self.send_error(HTTPStatus.NOT_FOUND, "File not found")
        return None

    def send_page(self, status: HTTPStatus, path: Path) -> None:
        body = inject_reload(path.read_text(encoding="utf-8"), self.snippet).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def log_message(self, format, *args):
        logger.debug("%s %s", self.address_string(), format % args)


class ReloadHub:
    """Websocket endpoint that tells connected browsers to reload.

    Attributes:
        port: Port the websocket server listens on.
        clients: Open connections.
        loop: Event loop the server runs on, set once ``run`` starts.
    """

    def __init__(self, port: int):
        self.port = port
        self.clients: set = set()
        self.loop: asyncio.AbstractEventLoop | None = None

    async def handle(self, websocket) -> None:
        self.clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self.clients.discard(websocket)

    async def broadcast(self, message: str) -> None:
        """Send a message to every client, dropping those that fail."""
        clients = list(self.clients)
        results = await asyncio.gather(
            *(client.send(message) for client in clients), return_exceptions=True
        )
        for client, result in zip(clients, results):
            if isinstance(result, Exception):
                logger.debug("Dropping reload client: %s", result)
                self.clients.discard(client)

    def notify(self) -> None:
        """Ask every browser to reload; safe to call from any thread."""
        if self.loop is None:
            return
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self.broadcast(message), self.loop)

    def run(self) -> None:  # pragma: no cover - needs a socket
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_until_complete(self._serve())
        except OSError as exc:
            logger.error("Live reload unavailable on port %s: %s", self.port, exc)

    async def _serve(self) -> None:  # pragma: no cover - needs a socket
        async with websockets.serve(self.handle, "0.0.0.0", self.port):
            await asyncio.Future()

    def close(self) -> None:
        if self.loop is not None:
            self.loop.call_soon_threadsafe(self.loop.stop)


class SourceWatcher(FileSystemEventHandler):
    """Schedules a rebuild when a site input changes."""

    def __init__(self, server: DevServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        if event.is_directory:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(path and self.server.is_input(Path(os.fsdecode(path))) for path in paths):
            self.server.schedule_rebuild()


class DevServer:
    """Builds a project, serves it and rebuilds it on change.

    Attributes:
        project_root: Root directory of the project.
        source_dir: Directory holding the site content.
        output_dir: Directory the site is served from.
        staging_dir: Directory each build is written to before it goes live.
        http_port: Port for the HTTP server.
        ws_port: Port for the live reload websocket.
        quiet_period: Seconds without changes before a rebuild starts.
    """

    def __init__(
        self,
        project_root: Path,
        http_port: int | None = None,
        ws_port: int | None = None,
        include_drafts: bool = False,
    ):
        self.project_root = project_root
        config = load_config(project_root)
        self.source_dir = project_root / str(config.get("source_dir") or "site")
        self.data_dir = project_root / "data"
        self.config_path = project_root / CONFIG_FILENAME
        self.output_dir = project_root / str(config.get("output_dir") or "output")
        self.staging_dir = self.output_dir.with_name(f"{self.output_dir.name}.staging")
        self.http_port = int(http_port or config.get("port") or 4000)
        # An explicit HTTP port moves the websocket along with it.
        if ws_port is None and http_port is None:
            ws_port = config.get("ws_port")
        self.ws_port = int(ws_port or self.http_port + 1)
        self.site_url = f"http://localhost:{self.http_port}"
        self.include_drafts = include_drafts
        self.quiet_period = 0.2
        self.hub = ReloadHub(self.ws_port)
        self._fingerprint: tuple | None = None
        self._timer: threading.Timer | None = None
        self._timer_lock = threading.Lock()
        self._build_lock = threading.Lock()
        self._observer: Observer | None = None

    @property
    def snippet(self) -> str:
        return RELOAD_SNIPPET.format(port=self.ws_port)

    def is_input(self, path: Path) -> bool:
        """Whether a change to ``path`` can change the built site."""
        for built in (self.output_dir, self.staging_dir):
            if path.is_relative_to(built):
                return False
        if path == self.config_path:
            return True
        return path.is_relative_to(self.source_dir) or path.is_relative_to(self.data_dir)

    def fingerprint(self) -> tuple:
        """Modification times and sizes of every input file."""
        candidates = [self.config_path]
        for folder in (self.source_dir, self.data_dir):
            if folder.is_dir():
                candidates.extend(sorted(folder.rglob("*")))
        entries = []
        for path in candidates:
            if not self.is_input(path) or not path.is_file():
                continue
            try:
                stat = path.stat()
            except OSError:
                continue
            entries.append((str(path), stat.st_mtime_ns, stat.st_size))
        return tuple(entries)

    def build(self) -> BuildResult:
        """Build into the staging directory, then make it the served output."""
        with self._build_lock:
            if self.staging_dir.exists():
                shutil.rmtree(self.staging_dir)
            result = build_site(
                self.project_root,
                include_drafts=self.include_drafts,
                clean_output=True,
                output_dir_override=self.staging_dir,
                site_url=self.site_url,
            )
            if self.output_dir.exists():
                shutil.rmtree(self.output_dir)
            os.replace(self.staging_dir, self.output_dir)
        click.echo(f"Built {len(result.pages)} pages")
        for failure in result.failures:
            click.echo(
                click.style(
                    f"  {failure.display_path(self.project_root)}: "
                    f"{failure.kind}: {failure.message}",
                    fg="yellow",
                ),
                err=True,
            )
        return result

    def schedule_rebuild(self) -> None:
        """Rebuild once changes have been quiet for ``quiet_period`` seconds."""
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.quiet_period, self.rebuild)
            self._timer.daemon = True
            self._timer.start()

    def rebuild(self) -> bool:
        """Rebuild if any input changed since the last build.

        Returns:
            True if a build ran and browsers were told to reload.
        """
        fingerprint = self.fingerprint()
        if fingerprint == self._fingerprint:
            logger.debug("Inputs unchanged; skipping rebuild")
            return False
        self._fingerprint = fingerprint
        click.echo("Change detected; rebuilding...")
        self.build()
        self.hub.notify()
        return True

    def start(self, include_drafts: bool = False) -> None:  # pragma: no cover - runs until interrupted
        self.include_drafts = include_drafts
        self._fingerprint = self.fingerprint()
        self.build()
        threading.Thread(target=self.hub.run, daemon=True).start()
        threading.Thread(target=self._serve_http, daemon=True).start()
        self._watch()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self.hub.close()

    def _serve_http(self) -> None:  # pragma: no cover - needs a socket
        output_dir = str(self.output_dir)
        snippet = self.snippet

        class Handler(SiteRequestHandler):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, directory=output_dir, **kwargs)

        Handler.snippet = snippet
        httpd = ThreadingHTTPServer(("", self.http_port), Handler)
        click.echo(f"Serving {self.output_dir} at {self.site_url}")
        httpd.serve_forever()

    def _watch(self) -> None:  # pragma: no cover - starts an observer thread
        watcher = SourceWatcher(self)
        observer = Observer()
        for folder in (self.source_dir, self.data_dir):
            if folder.is_dir():
                observer.schedule(watcher, str(folder), recursive=True)
        observer.schedule(watcher, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer
