import logging
import sys

from colorama import Fore, Style, init

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

LEVEL_COLORS = {
    logging.DEBUG: Fore.CYAN,
    logging.INFO: Fore.WHITE,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}


class ColorFormatter(logging.Formatter):
    """Colours the whole console line by level. Records may carry ``color`` to override."""

    def format(self, record):
        message = super().format(record)
        color = getattr(record, "color", None) or LEVEL_COLORS.get(record.levelno, "")
        return f"{color}{message}{Style.RESET_ALL}"


def setup_logging(level="INFO", log_file=None):
    init(autoreset=True)

    root = logging.getLogger("pharos_names")
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = False

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ColorFormatter(LOG_FORMAT))
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    return root
