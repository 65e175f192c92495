"""
Salon scheduling service entry point.

Serves the availability and booking API over HTTP, or runs the offline
console demo against the seeded demo salons.

Usage:
    HTTP API:         python main.py serve
    With demo data:   python main.py serve --demo
    Console mode:     python main.py console
"""

import logging
import sys

from salon_scheduler.config import settings

logger = logging.getLogger(__name__)


def _run_server(seed_demo: bool) -> None:
    """Start the HTTP API with uvicorn on the configured host and port."""
    import uvicorn

    from salon_scheduler.api import create_app
    from salon_scheduler.engine import build_engine

    engine = build_engine(settings, seed_demo_data=seed_demo)
    app = create_app(engine, settings)
    logger.info(
        "Starting %s on %s:%d (demo data: %s)",
        settings.service_name, settings.api.host, settings.api.port, seed_demo,
    )
    uvicorn.run(app, host=settings.api.host, port=settings.api.port, log_level=settings.log_level.lower())


def _run_console_mode() -> None:
    """Start the offline console demo."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    session.run()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode()
    else:
        _run_server(seed_demo="--demo" in sys.argv[1:])
