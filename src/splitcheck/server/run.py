"""Run the splitcheck ASGI application under uvicorn."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

import uvicorn

logger = logging.getLogger(__name__)

APP_PATH = "splitcheck.server.app:app"


@dataclass(frozen=True)
class ServerOptions:
    """Where and how to serve the API.

    ``duration`` stops the server after that many seconds, which keeps smoke runs
    from hanging; it cannot be combined with auto-reload.
    """

    host: str = "127.0.0.1"
    port: int = 8000
    reload: bool = False
    duration: Optional[float] = None

    def __post_init__(self) -> None:
        if self.duration is not None and self.duration <= 0:
            raise SystemExit("SPLITCHECK_SERVER_DURATION must be greater than 0 when provided.")
        if self.reload and self.duration is not None:
            raise SystemExit("Use RELOAD=0 when specifying SPLITCHECK_SERVER_DURATION.")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> "ServerOptions":
        raw_duration = environ.get("SPLITCHECK_SERVER_DURATION")
        duration: Optional[float] = None
        if raw_duration:
            try:
                duration = float(raw_duration)
            except ValueError as exc:
                raise SystemExit(
                    f"Invalid SPLITCHECK_SERVER_DURATION '{raw_duration}': {exc}"
                ) from exc
        return cls(
            host=environ.get("SPLITCHECK_SERVER_HOST", cls.host),
            port=int(environ.get("SPLITCHECK_SERVER_PORT", cls.port)),
            reload=environ.get("RELOAD") == "1",
            duration=duration,
        )


async def _serve_for(server: uvicorn.Server, duration: float) -> None:
    loop = asyncio.get_running_loop()
    stop = loop.call_later(duration, setattr, server, "should_exit", True)
    try:
        await server.serve()
    finally:
        stop.cancel()


def serve(options: ServerOptions) -> None:
    """Block serving the API until interrupted or ``options.duration`` elapses."""

    logger.info("Serving splitcheck on http://%s:%s", options.host, options.port)
    if options.reload:
        uvicorn.run(APP_PATH, host=options.host, port=options.port, reload=True)
        return

    server = uvicorn.Server(uvicorn.Config(APP_PATH, host=options.host, port=options.port))
    if options.duration is None:
        server.run()
    else:
        asyncio.run(_serve_for(server, options.duration))


def main() -> None:
    """Entry point for the ``splitcheck-server`` script."""

    serve(ServerOptions.from_env())


if __name__ == "__main__":
    main()
