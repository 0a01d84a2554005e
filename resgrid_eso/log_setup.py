import sys
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_dir: Optional[str], debug: bool = False) -> logging.Logger:
    lvl = logging.DEBUG if debug else logging.INFO
    logger = logging.getLogger("resgrid_eso")
    logger.setLevel(lvl)
    if logger.handlers:
        return logger

    fmt = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            str(Path(log_dir) / "bridge.log"), maxBytes=10_000_000, backupCount=5, encoding="utf-8"
        )
        fh.setFormatter(fmt)
        logger.addHandler(fh)

        # errors also go to their own file
        eh = RotatingFileHandler(
            str(Path(log_dir) / "error.log"), maxBytes=5_000_000, backupCount=5, encoding="utf-8"
        )
        eh.setLevel(logging.ERROR)
        eh.setFormatter(fmt)
        logger.addHandler(eh)

    return logger
