from __future__ import annotations
import logging


def get_logger(name: str = "nnviz", level: str | int | None = None):
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger
