import argparse
import itertools
import json
import sys
import time
from typing import IO, Any, Dict, Optional

from bqstream.settings.logging import logger


def sample_event(message: str, i: int) -> Dict[str, Any]:
    """
    Одна синтетическая запись.

    :param message: Префикс текста сообщения.
    :param i: Порядковый номер записи (с 1).
    :return: {"eventId": i, "message": "<message> <i>"}.
    """
    return {"eventId": i, "message": f"{message} {i}"}


def generate_events(
    out: IO[str],
    message: str,
    count: Optional[int] = None,
    interval_sec: float = 1.0,
) -> int:
    """
    Пишет NDJSON-записи в поток для ручной проверки bqstream через pipe.

    Формат строки:
    {"eventId": 1, "message": "hello 1"}

    :param out: Текстовый поток (обычно stdout).
    :param message: Префикс текста сообщения.
    :param count: Сколько записей написать; None — бесконечно.
    :param interval_sec: Пауза между записями.
    :return: Количество записанных строк.
    """
    counter = itertools.count(1) if count is None else range(1, count + 1)

    written = 0
    for i in counter:
        out.write(json.dumps(sample_event(message, i)) + "\n")
        out.flush()
        written += 1
        logger.debug("WROTE %s", i)

        if interval_sec > 0:
            time.sleep(interval_sec)
    return written


def main() -> None:
    """
    Запуск из терминала функции generate_events.

    :return: None.
    """
    parser = argparse.ArgumentParser(description="Generate sample NDJSON events")
    parser.add_argument(
        "--message",
        default="event",
        help="Message text prefix",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=None,
        help="Number of events to write (default: infinite)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=1.0,
        help="Seconds between events",
    )

    args = parser.parse_args()

    try:
        generate_events(
            sys.stdout,
            message=args.message,
            count=args.count,
            interval_sec=args.interval,
        )
    except (KeyboardInterrupt, BrokenPipeError):
        # Ctrl+C или закрытый pipe — штатная остановка генератора
        logger.info("Генератор остановлен")


if __name__ == "__main__":
    main()
