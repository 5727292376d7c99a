"""
Counter service entry point. Serves the HTTP API over the configured store.
"""
import asyncio
import logging
import signal
import structlog
import uvicorn

from tasbih.config import config
from tasbih.services import CounterApi, CounterService
from tasbih.storage import build_store

logging.basicConfig(format="%(message)s", level=getattr(logging, config.log_level, logging.INFO))

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

log = structlog.get_logger()


async def main():
    store = build_store(config)
    service = CounterService(store)
    api = CounterApi(config, service)

    shutdown = asyncio.Event()

    loop = asyncio.get_event_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    server = uvicorn.Server(uvicorn.Config(
        api.app, host=config.http_host, port=config.http_port, log_level="warning"
    ))

    log.info("service_starting", http=config.http_port, store=config.store_backend,
             api_prefix=config.api_prefix)

    async def wait_shutdown():
        await shutdown.wait()
        raise asyncio.CancelledError()

    try:
        await asyncio.gather(server.serve(), wait_shutdown())
    except asyncio.CancelledError:
        pass
    finally:
        store.close()
        log.info("service_stopped")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
