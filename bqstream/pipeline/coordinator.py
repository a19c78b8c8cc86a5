import queue
import threading
import time
from dataclasses import dataclass
from typing import IO, Any, Callable, List, Optional, Sequence

from bqstream.bigquery.client import Sink
from bqstream.pipeline.consumer import ConsumerConfig, consumer_main
from bqstream.pipeline.inserter import Inserter, InserterConfig
from bqstream.pipeline.metrics import MetricsSnapshot, PipelineMetrics
from bqstream.pipeline.producer import ProducerConfig, producer_main
from bqstream.pipeline.triggers import interrupt_handler, interval_flusher_main
from bqstream.settings.logging import logger
from bqstream.utils.errors import WorkerStopError


@dataclass(frozen=True)
class PipelineConfig:
    """
    Конфиг координатора пайплайна.

    :param inserter: InserterConfig (таблица, insertId, flush_size).
    :param flush_interval_sec: Период интервального flush.
    :param queue_maxsize: Размер очереди producer → consumer (backpressure).
    :param log_interval_sec: Интервал логирования метрик координатором.
    :param handle_signals: Перехватывать SIGINT/SIGTERM для последнего flush.
    :param join_timeout_sec: Сколько ждать остановки потоков.
    """

    inserter: InserterConfig
    flush_interval_sec: float = 5.0
    queue_maxsize: int = 1
    log_interval_sec: float = 30.0
    handle_signals: bool = True
    join_timeout_sec: float = 30.0


@dataclass(frozen=True)
class PipelineResult:
    """
    Итог работы пайплайна.

    :param inserted_rows: Сколько строк подтвердил BigQuery.
    :param interrupted: Остановлен ли пайплайн сигналом.
    :param metrics: Финальный MetricsSnapshot.
    """

    inserted_rows: int
    interrupted: bool
    metrics: MetricsSnapshot


def run_pipeline(
    cfg: PipelineConfig,
    sink: Sink,
    stream: IO[Any],
    *,
    metrics: Optional[PipelineMetrics] = None,
    interrupt_event: Optional[threading.Event] = None,
) -> PipelineResult:
    """
    Запускает producer/consumer пайплайн и ждёт завершения.

    Схема:
    - producer поток: читает NDJSON -> кладёт записи в очередь
    - consumer поток: читает записи -> Inserter.insert (flush по размеру)
    - flusher поток: Inserter.flush раз в flush_interval_sec
    - главный поток: логирует прогресс, ловит сигнал прерывания и делает
      последний flush, когда вход закончился или пришёл сигнал

    Любая ошибка в потоках останавливает всё; последний flush при этом
    не делается, ошибка поднимается наверх.

    :param cfg: PipelineConfig.
    :param sink: Приёмник батчей.
    :param stream: Входной поток NDJSON.
    :param metrics: PipelineMetrics (опционально, для наблюдения снаружи).
    :param interrupt_event: Событие прерывания (опционально).
    :return: PipelineResult.
    """
    metrics = metrics or PipelineMetrics()
    interrupt_event = interrupt_event or threading.Event()
    stop_event = threading.Event()
    failures: List[BaseException] = []

    inserter = Inserter(sink, cfg.inserter, metrics)
    records: queue.Queue = queue.Queue(maxsize=cfg.queue_maxsize)

    # producer может висеть на чтении stdin, поэтому все потоки daemon
    producer = _worker(
        "producer",
        producer_main,
        (stream, records, stop_event, metrics, ProducerConfig()),
        stop_event,
        failures,
    )
    consumer = _worker(
        "consumer",
        consumer_main,
        (records, stop_event, inserter, ConsumerConfig()),
        stop_event,
        failures,
    )
    flusher = _worker(
        "flusher",
        interval_flusher_main,
        (inserter, stop_event, cfg.flush_interval_sec),
        stop_event,
        failures,
    )

    with interrupt_handler(interrupt_event, enabled=cfg.handle_signals):
        for t in (consumer, flusher, producer):
            t.start()

        last = metrics.snapshot()
        last_log_t = time.monotonic()

        try:
            while True:
                if stop_event.is_set() or interrupt_event.is_set():
                    break

                if not consumer.is_alive():
                    break

                now = time.monotonic()
                if now - last_log_t >= cfg.log_interval_sec:
                    snap = metrics.snapshot()
                    _log_progress(snap, last, inserter.pending_rows)
                    last = snap
                    last_log_t = now

                time.sleep(0.1)

        finally:
            stop_event.set()
            _join((consumer, flusher), cfg.join_timeout_sec)

        _raise_failure(failures, inserter)

        interrupted = interrupt_event.is_set()
        # ждёт lock, если consumer или flusher ещё внутри insertAll
        inserter.flush(reason="interrupt" if interrupted else "final")

        # тот flush мог упасть, пока главный поток ждал lock
        alive = _join((consumer, flusher), cfg.join_timeout_sec)
        _raise_failure(failures, inserter)
        if alive:
            raise WorkerStopError([t.name for t in alive], cfg.join_timeout_sec)

    final = metrics.snapshot()
    _log_progress(final, last, inserter.pending_rows)
    return PipelineResult(
        inserted_rows=inserter.inserted_row_count,
        interrupted=interrupted,
        metrics=final,
    )


def _worker(
    name: str,
    target: Callable[..., None],
    args: tuple,
    stop_event: threading.Event,
    failures: List[BaseException],
) -> threading.Thread:
    """
    Создаёт поток, который при любой ошибке останавливает весь пайплайн.

    :param name: Имя потока (для логов).
    :param target: Функция потока.
    :param args: Аргументы функции.
    :param stop_event: Event остановки пайплайна.
    :param failures: Сюда складывается ошибка потока.
    :return: Не запущенный threading.Thread.
    """

    def run() -> None:
        try:
            target(*args)
        except Exception as e:
            logger.exception("Поток %s упал: %s", name, e)
            failures.append(e)
            stop_event.set()

    return threading.Thread(target=run, name=name, daemon=True)


def _join(threads: Sequence[threading.Thread], timeout_sec: float) -> List[threading.Thread]:
    """
    Ждёт остановки потоков.

    :param threads: Потоки.
    :param timeout_sec: Сколько ждать каждый поток.
    :return: Потоки, которые всё ещё работают.
    """
    for t in threads:
        t.join(timeout=timeout_sec)

    alive = [t for t in threads if t.is_alive()]
    if alive:
        logger.warning(
            "Не остановились за %ss: %s", timeout_sec, ", ".join(t.name for t in alive)
        )
    return alive


def _raise_failure(failures: List[BaseException], inserter: Inserter) -> None:
    """
    Поднимает первую ошибку потоков, если она есть.

    :param failures: Ошибки потоков.
    :param inserter: Inserter (для лога неотправленных строк).
    :return: None.
    """
    if not failures:
        return

    if inserter.pending_rows:
        logger.error(
            "Pipeline остановлен с ошибкой, строк в буфере не отправлено: %s",
            inserter.pending_rows,
        )
    raise failures[0]


def _log_progress(cur: MetricsSnapshot, prev: MetricsSnapshot, pending: int) -> None:
    """
    Логирует прогресс и throughput между двумя снимками.

    :param cur: Текущий снимок.
    :param prev: Предыдущий снимок.
    :param pending: Сколько строк сейчас в буфере.
    :return: None.
    """
    dt = max(1e-6, cur.ts - prev.ts)
    dr = cur.rows_inserted - prev.rows_inserted

    logger.info(
        "progress: read=%s inserted=%s (%.0f rows/s) batches=%s pending=%s "
        "flush_errors=%s",
        cur.records_read,
        cur.rows_inserted,
        dr / dt,
        cur.batches_flushed,
        pending,
        cur.flush_errors,
    )
