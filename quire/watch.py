from __future__ import annotations

import asyncio
import functools
import os
import threading
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .context import BuildContext
from .scheduler import Builder, BuildReport, clean, route_map


class ChangeHandler(FileSystemEventHandler):
    """Forwards add/change events from the observer thread to the event loop."""

    def __init__(self, builder: Builder, loop: asyncio.AbstractEventLoop) -> None:
        self.builder = builder
        self.loop = loop

    def _forward(self, path: str) -> None:
        self.loop.call_soon_threadsafe(self.builder.notify_change, Path(os.fsdecode(path)))

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.dest_path)


def watched_dirs(ctx: BuildContext) -> list[Path]:
    config = ctx.config
    dirs = [config.content_dir, config.layout_dir, config.partials_dir, config.static_dir]
    return [path for path in dirs if path.is_dir()]


class QuietRequestHandler(SimpleHTTPRequestHandler):
    def log_message(self, format, *args):
        pass


def start_server(ctx: BuildContext) -> ThreadingHTTPServer:
    ctx.config.output_dir.mkdir(parents=True, exist_ok=True)
    handler = functools.partial(QuietRequestHandler, directory=str(ctx.config.output_dir))
    server = ThreadingHTTPServer(("", ctx.config.port), handler)
    thread = threading.Thread(target=server.serve_forever, name="quire-http", daemon=True)
    thread.start()
    print(f"Listening at http://localhost:{server.server_address[1]}")
    return server


async def run_watch(ctx: BuildContext, builder: Builder) -> BuildReport:
    loop = asyncio.get_running_loop()
    observer = Observer()
    handler = ChangeHandler(builder, loop)
    for path in watched_dirs(ctx):
        observer.schedule(handler, str(path), recursive=True)
        print(f"Watching {path} for changes...")
    observer.start()

    def on_empty() -> None:
        # Live reload would be triggered here.
        print("Done. Waiting for changes...")

    try:
        return await builder.drain_cooperatively(on_empty=on_empty)
    finally:
        observer.stop()
        observer.join()


def watch(ctx: BuildContext, serve: bool = False) -> BuildReport:
    if ctx.options.clean:
        clean(ctx)
    builder = Builder(ctx)
    builder.enqueue_all()
    server: Optional[ThreadingHTTPServer] = None
    if serve:
        if ctx.options.verbose:
            for output_uri, input_uri in sorted(route_map(ctx).items()):
                print(f"Adding {output_uri} -> {input_uri}")
        server = start_server(ctx)
    try:
        return asyncio.run(run_watch(ctx, builder))
    except KeyboardInterrupt:
        print("\nStopping file watcher...")
        return builder.report
    finally:
        if server is not None:
            server.shutdown()
            server.server_close()
