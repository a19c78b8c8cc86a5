import queue
import threading
from dataclasses import dataclass

from bqstream.pipeline.inserter import Inserter
from bqstream.settings.logging import logger


@dataclass(frozen=True)
class ConsumerConfig:
    """
    Конфигурация consumer-потока.

    :param queue_get_timeout_sec: Таймаут ожидания сообщений в очереди.
    """

    queue_get_timeout_sec: float = 0.5


def consumer_main(
    in_queue: queue.Queue,
    stop_event: threading.Event,
    inserter: Inserter,
    cfg: ConsumerConfig,
) -> None:
    """
    Consumer: читает записи из очереди и передаёт их в Inserter.

    Sentinel для остановки: None.
    Ошибки insert (insertId, flush по размеру) не перехватываются.

    :param in_queue: Очередь с записями/None.
    :param stop_event: Event для остановки.
    :param inserter: Inserter.
    :param cfg: ConsumerConfig.
    :return: None.
    """
    logger.info("Consumer запущен")

    consumed = 0
    while True:
        if stop_event.is_set():
            break

        try:
            msg = in_queue.get(timeout=cfg.queue_get_timeout_sec)
        except queue.Empty:
            continue

        if msg is None:
            # sentinel
            break

        inserter.insert(msg)
        consumed += 1

    logger.info("Consumer закончил работу, записей передано: %s", consumed)
