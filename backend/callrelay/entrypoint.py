import asyncio
import logging
import signal
from typing import Optional

import uvicorn

from callrelay.core.config import Settings, get_settings
from callrelay.main import create_app

logger = logging.getLogger(__name__)


async def serve(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    config = uvicorn.Config(
        create_app(settings),
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)

    server_task = asyncio.create_task(server.serve())
    logger.info("Webhook listening on port %s", settings.port)
    await stop_event.wait()
    # Background relays already started finish before uvicorn returns.
    server.should_exit = True
    await server_task


def main() -> None:
    asyncio.run(serve())


if __name__ == "__main__":
    main()
