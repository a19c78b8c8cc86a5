import logging
import sys

import colorlog

# stdout не трогаем: туда может писать генератор или другой процесс в pipe
handler = colorlog.StreamHandler(sys.stderr)
handler.setFormatter(
    colorlog.ColoredFormatter(
        "%(log_color)s%(asctime)s [%(levelname)s] %(module)s (%(funcName)s:%(lineno)d): %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        log_colors={
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        },
    )
)

logger = logging.getLogger("bqstream")
logger.addHandler(handler)
logger.setLevel(logging.INFO)


def set_level(level: str) -> None:
    """
    Меняет уровень логирования приложения.

    :param level: Имя уровня ("DEBUG", "INFO", ...), регистр не важен.
    :return: None.
    :raises ValueError: Если уровень неизвестен.
    """
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level: {level!r}")
    logger.setLevel(value)
