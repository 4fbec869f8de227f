from aiohttp import web

from factiony_api.app import create_app
from factiony_api.config import HOST, PORT
from factiony_api.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def main():
    setup_logging()
    logger.info(f"Starting Factiony API on {HOST}:{PORT}")
    web.run_app(create_app(), host=HOST, port=PORT, print=None)


def cli():
    try:
        main()
    except KeyboardInterrupt:
        # Handle Ctrl+C gracefully
        pass


if __name__ == "__main__":
    cli()
