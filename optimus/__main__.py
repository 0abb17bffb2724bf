"""Process entry point: ``python -m optimus`` or the ``optimus`` console script.

Invariants:
    - Settings are loaded exactly once, here
    - A startup failure, invalid configuration included, is reported at CRITICAL and exits with status 1

Design Decisions:
    - Logging falls back to defaults when settings cannot be loaded, so a bad env still yields a structured record
"""

import asyncio
import logging
import sys

from pydantic import ValidationError

from optimus.config import Settings, load_settings
from optimus.core.errors import CriticalError
from optimus.infrastructure.observability import setup_logging
from optimus.server import OptimusServer

logger = logging.getLogger("optimus")


async def serve(settings: Settings) -> None:
    server = OptimusServer(settings)
    handle = await server.start()
    await handle.wait()


def main() -> None:
    try:
        settings = load_settings()
    except ValidationError:
        setup_logging()
        logger.critical("Invalid configuration", exc_info=True)
        sys.exit(1)
    setup_logging(settings.log_level, settings.log_format)

    try:
        asyncio.run(serve(settings))
    except CriticalError:
        # already logged by OptimusServer.start
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Optimus server interrupted")
    except Exception:
        logger.critical("Optimus crashed", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
