"""Server entry point for the Search Logger."""

import atexit
import logging
import os

from search_logger.app import create_app
from search_logger.config import load_config

DRAIN_TIMEOUT = 10.0
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _level(name: str) -> int:
    return getattr(logging, str(name).upper(), logging.INFO)


def configure_logging(level_name: str):
    logging.basicConfig(level=_level(level_name), format=LOG_FORMAT)


def main():
    # Before load_config, which logs the YAML it reads
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
    config = load_config()
    logging.getLogger().setLevel(_level(config.log_level))
    logger = logging.getLogger(__name__)

    app = create_app(config)
    dispatcher = app.config["components"]["dispatcher"]

    def drain_sinks():
        if not dispatcher.drain(timeout=DRAIN_TIMEOUT):
            logger.warning("%d sink call(s) still running at exit", dispatcher.in_flight)

    atexit.register(drain_sinks)

    logger.info("Starting Search Logger on %s:%d", config.host, config.port)
    app.run(host=config.host, port=config.port, use_reloader=False)


# For gunicorn: `gunicorn 'search_logger.app:create_app()'`
if __name__ == "__main__":
    main()
