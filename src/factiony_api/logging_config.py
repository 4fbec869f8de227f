import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from colorama import Fore, Style
from colorama import init as colorama_init

from factiony_core.network import mask_url

from .config import IGDB_ACCESS_TOKEN, IGDB_CLIENT_ID, LOG_LEVEL, RAWG_API_KEY, YOUTUBE_API_KEY

SECRETS = {
    "RAWG_API_KEY": RAWG_API_KEY,
    "IGDB_CLIENT_ID": IGDB_CLIENT_ID,
    "IGDB_ACCESS_TOKEN": IGDB_ACCESS_TOKEN,
    "YOUTUBE_API_KEY": YOUTUBE_API_KEY,
}


class SensitiveDataFilter(logging.Filter):
    """Masks provider keys and tokens in log messages and their args."""

    def __init__(self, secrets: dict[str, str] | None = None):
        super().__init__()
        self.secrets = {name: value for name, value in (SECRETS if secrets is None else secrets).items() if value}

    def mask(self, text):
        if isinstance(text, str):
            for name, value in self.secrets.items():
                if value in text:
                    text = text.replace(value, f"***{name}***")
            text = mask_url(text)
        return text

    def filter(self, record):
        record.msg = self.mask(record.msg)

        if record.args:
            if isinstance(record.args, tuple):
                record.args = tuple(self.mask(arg) for arg in record.args)
            elif isinstance(record.args, dict):
                record.args = {k: self.mask(v) for k, v in record.args.items()}

        return True


class ConsoleNoiseFilter(logging.Filter):
    """Keeps CORS preflight access lines off the console."""

    def filter(self, record):
        if record.name == "aiohttp.access" and '"OPTIONS ' in record.getMessage():
            return False
        return True


def setup_logging(log_dir: str = "logs"):
    # Force color if requested via environment variable (common in Docker)
    force_color = os.getenv("FORCE_COLOR", "").lower() in ("1", "true")
    colorama_init(autoreset=True, strip=False if force_color else None)

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    # Handler-level so records propagated from child loggers are masked too
    sensitive = SensitiveDataFilter()

    # Root captures everything; handlers filter
    root.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(LOG_LEVEL)
    console_handler.setFormatter(
        logging.Formatter(
            f"{Fore.CYAN}%(asctime)s{Style.RESET_ALL} | "
            f"{Fore.GREEN}%(levelname)s{Style.RESET_ALL}: "
            f"{Fore.YELLOW}%(name)s{Style.RESET_ALL} - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    console_handler.addFilter(sensitive)
    console_handler.addFilter(ConsoleNoiseFilter())
    root.addHandler(console_handler)

    os.makedirs(log_dir, exist_ok=True)
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, "factiony.log"), maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.addFilter(sensitive)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s: %(name)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    root.addHandler(file_handler)

    # aiohttp logs every request at INFO
    logging.getLogger("aiohttp.access").setLevel(logging.INFO)


def get_logger(name: str):
    return logging.getLogger(name)
