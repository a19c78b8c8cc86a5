import queue
import threading
from dataclasses import dataclass
from typing import IO, Any, Optional

from bqstream.pipeline.metrics import PipelineMetrics
from bqstream.records.reader import ReaderStats, iter_records
from bqstream.settings.logging import logger


@dataclass(frozen=True)
class ProducerConfig:
    """
    Конфигурация producer-потока.

    :param put_timeout_sec: Таймаут одной попытки положить запись в очередь;
                            между попытками проверяется stop_event.
    """

    put_timeout_sec: float = 0.5


def producer_main(
    stream: IO[Any],
    out_queue: queue.Queue,
    stop_event: threading.Event,
    metrics: PipelineMetrics,
    cfg: ProducerConfig,
) -> None:
    """
    Построчно читает NDJSON и кладёт записи в очередь по одной.

    Сообщения в очереди:
    - dict — запись в порядке входа;
    - None — sentinel, вход закончился.

    Ошибка декодирования не перехватывается: она останавливает pipeline.

    :param stream: Входной поток (обычно sys.stdin.buffer).
    :param out_queue: Ограниченная очередь к consumer (backpressure).
    :param stop_event: Событие остановки.
    :param metrics: PipelineMetrics.
    :param cfg: ProducerConfig.
    :return: None.
    """
    stats = ReaderStats()
    logger.info("Producer started")

    try:
        for record in iter_records(stream, stats=stats):
            if stop_event.is_set():
                break
            metrics.inc("records_read", 1)
            if not _put(out_queue, stop_event, record, cfg):
                break
        else:
            _put(out_queue, stop_event, None, cfg)

    finally:
        logger.info(
            "Producer finished. lines_read=%s records_emitted=%s bytes_read=%s",
            stats.lines_read,
            stats.records_emitted,
            stats.bytes_read,
        )


def _put(
    out_queue: queue.Queue,
    stop_event: threading.Event,
    msg: Optional[dict],
    cfg: ProducerConfig,
) -> bool:
    """
    Кладёт сообщение в очередь с учётом stop_event.

    :param out_queue: Очередь к consumer.
    :param stop_event: Event.
    :param msg: Запись или None (sentinel).
    :param cfg: ProducerConfig.
    :return: True, если сообщение в очереди; False, если pipeline остановлен.
    """
    while not stop_event.is_set():
        try:
            out_queue.put(msg, timeout=cfg.put_timeout_sec)  # backpressure тут
            return True
        except queue.Full:
            continue
    return False
