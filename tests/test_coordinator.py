import dataclasses
import io
import threading
import time

import pytest
from google.api_core.exceptions import ServiceUnavailable

from bqstream.bigquery.client import RowError
from bqstream.bigquery.identity import AttributeIdentity, EmptyIdentity
from bqstream.pipeline import InserterConfig, PipelineConfig, run_pipeline
from bqstream.pipeline.coordinator import _join
from bqstream.pipeline.metrics import PipelineMetrics
from bqstream.utils.errors import (
    MissingIdentityAttributeError,
    RecordDecodeError,
    RowInsertError,
)


class BlockingStream:
    """Отдаёт строки, затем "висит", как stdin без EOF."""

    def __init__(self, lines: list[bytes]) -> None:
        self.lines = lines
        self.release = threading.Event()

    def __iter__(self):
        yield from self.lines
        self.release.wait(10)


def _ndjson(n: int) -> bytes:
    return b"".join(b'{"id": "r%d", "n": %d}\n' % (i, i) for i in range(n))


def _cfg(destination, flush_size=2, interval=60.0, identity=None) -> PipelineConfig:
    return PipelineConfig(
        inserter=InserterConfig(
            destination=destination,
            identity=identity or EmptyIdentity(),
            flush_size=flush_size,
        ),
        flush_interval_sec=interval,
        queue_maxsize=1,
        log_interval_sec=0.05,
        handle_signals=False,
        join_timeout_sec=5,
    )


def test_pipeline_smoke(sink, destination):
    """
    Smoke-тест для coordinator пайплайна.

    Проверяет, что полный пайплайн
    (producer → consumer → Inserter → FakeSink)
    отдаёт все записи в исходном порядке и делает последний flush
    на конце входа.
    """
    result = run_pipeline(_cfg(destination), sink, io.BytesIO(_ndjson(5)))

    assert result.inserted_rows == 5
    assert result.interrupted is False
    assert [r["n"] for r in sink.sent_records] == [0, 1, 2, 3, 4]
    assert result.metrics.records_read == 5
    assert result.metrics.rows_inserted == 5


def test_pipeline_empty_input(sink, destination):
    result = run_pipeline(_cfg(destination), sink, io.BytesIO(b""))

    assert result.inserted_rows == 0
    assert sink.batches == []


def test_pipeline_decode_error_is_fatal(sink, destination):
    stream = io.BytesIO(_ndjson(2) + b"{broken\n" + _ndjson(2))

    with pytest.raises(RecordDecodeError) as exc:
        run_pipeline(_cfg(destination, flush_size=10), sink, stream)

    assert exc.value.line_no == 3
    # буфер не отправляется после фатальной ошибки
    assert sink.batches == []


def test_pipeline_identity_error_is_fatal(sink, destination):
    stream = io.BytesIO(b'{"id": "a"}\n{"v": 1}\n{"id": "c"}\n')

    with pytest.raises(MissingIdentityAttributeError):
        run_pipeline(
            _cfg(destination, flush_size=10, identity=AttributeIdentity("id")),
            sink,
            stream,
        )

    assert sink.batches == []


def test_pipeline_row_errors_are_fatal(sink, destination):
    sink.row_errors = [RowError(index=0, messages=["invalid"])]

    with pytest.raises(RowInsertError):
        run_pipeline(_cfg(destination), sink, io.BytesIO(_ndjson(4)))

    assert len(sink.batches) == 1


def test_pipeline_interval_flush(sink, destination, wait):
    """
    Вход не закончился, но интервальный flush отправляет накопленное.
    """
    stream = BlockingStream([b'{"n": 1}\n', b'{"n": 2}\n'])
    interrupt = threading.Event()

    def interrupt_after_flush() -> None:
        wait(lambda: len(sink.batches) >= 1)
        interrupt.set()

    helper = threading.Thread(target=interrupt_after_flush)
    helper.start()
    try:
        result = run_pipeline(
            _cfg(destination, flush_size=100, interval=0.05),
            sink,
            stream,
            interrupt_event=interrupt,
        )
    finally:
        stream.release.set()
        helper.join()

    assert result.interrupted is True
    assert result.inserted_rows == 2
    assert sink.sent_records == [{"n": 1}, {"n": 2}]


def test_pipeline_interrupt_drains_buffer(sink, destination, wait):
    """
    Сигнал прерывания: последний flush отправляет весь буфер.
    """
    stream = BlockingStream([b'{"n": 1}\n', b'{"n": 2}\n', b'{"n": 3}\n'])
    interrupt = threading.Event()
    metrics = PipelineMetrics()

    def interrupt_when_buffered() -> None:
        wait(lambda: metrics.snapshot().records_buffered == 3)
        interrupt.set()

    helper = threading.Thread(target=interrupt_when_buffered)
    helper.start()
    try:
        result = run_pipeline(
            _cfg(destination, flush_size=100, interval=3600),
            sink,
            stream,
            metrics=metrics,
            interrupt_event=interrupt,
        )
    finally:
        stream.release.set()
        helper.join()

    assert result.interrupted is True
    assert result.inserted_rows == 3
    assert len(sink.batches) == 1
    assert sink.sent_records == [{"n": 1}, {"n": 2}, {"n": 3}]


def test_pipeline_slow_failing_flush_outlives_join_timeout(sink, destination, wait):
    """
    Flush по размеру идёт дольше join_timeout_sec и падает уже после
    прерывания: ошибка всё равно поднимается, успеха нет.
    """
    sink.delay_sec = 1.0
    sink.error = ServiceUnavailable("backend unavailable")
    stream = BlockingStream([b'{"n": 1}\n'])
    interrupt = threading.Event()
    metrics = PipelineMetrics()

    def interrupt_mid_flush() -> None:
        wait(lambda: metrics.snapshot().records_buffered == 1)
        time.sleep(0.3)
        interrupt.set()

    cfg = dataclasses.replace(_cfg(destination, flush_size=1), join_timeout_sec=0.2)
    helper = threading.Thread(target=interrupt_mid_flush)
    helper.start()
    try:
        with pytest.raises(ServiceUnavailable):
            run_pipeline(cfg, sink, stream, metrics=metrics, interrupt_event=interrupt)
    finally:
        stream.release.set()
        helper.join()

    assert metrics.snapshot().rows_inserted == 0
    assert metrics.snapshot().flush_errors == 1


def test_join_reports_threads_still_running():
    """_join возвращает потоки, которые не остановились за таймаут."""
    stuck = threading.Event()
    worker = threading.Thread(target=stuck.wait, args=(5,), name="consumer", daemon=True)
    worker.start()
    try:
        alive = _join((worker,), 0.05)
        assert [t.name for t in alive] == ["consumer"]
    finally:
        stuck.set()
        worker.join()

    assert _join((worker,), 0.05) == []
