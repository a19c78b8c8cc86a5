import io
import queue
import threading

import pytest

from bqstream.pipeline.metrics import PipelineMetrics
from bqstream.pipeline.producer import ProducerConfig, producer_main
from bqstream.utils.errors import RecordDecodeError


def _drain(q: queue.Queue) -> list:
    out = []
    while not q.empty():
        out.append(q.get())
    return out


def test_producer_puts_records_and_sentinel():
    """
    Тесты для producer-потока пайплайна.

    Producer построчно читает NDJSON и кладёт записи в очередь по одной,
    а в конце входа — sentinel None. Проверяется без запуска потоков.
    """
    q = queue.Queue()
    stop = threading.Event()
    metrics = PipelineMetrics()

    producer_main(
        stream=io.BytesIO(b'{"n": 1}\n{"n": 2}\n'),
        out_queue=q,
        stop_event=stop,
        metrics=metrics,
        cfg=ProducerConfig(),
    )

    assert _drain(q) == [{"n": 1}, {"n": 2}, None]
    assert metrics.snapshot().records_read == 2


def test_producer_decode_error_propagates():
    q = queue.Queue()

    with pytest.raises(RecordDecodeError):
        producer_main(
            stream=io.BytesIO(b'{"n": 1}\nnot json\n{"n": 3}\n'),
            out_queue=q,
            stop_event=threading.Event(),
            metrics=PipelineMetrics(),
            cfg=ProducerConfig(),
        )

    # без sentinel: consumer остановит stop_event, а не конец входа
    assert _drain(q) == [{"n": 1}]


def test_producer_respects_stop_event():
    q = queue.Queue()
    stop = threading.Event()
    stop.set()

    producer_main(
        stream=io.BytesIO(b'{"n": 1}\n'),
        out_queue=q,
        stop_event=stop,
        metrics=PipelineMetrics(),
        cfg=ProducerConfig(),
    )

    assert q.empty()


def test_producer_gives_up_on_full_queue_after_stop():
    """
    Полная очередь + остановленный pipeline: producer не висит вечно.
    """
    q = queue.Queue(maxsize=1)
    stop = threading.Event()

    t = threading.Thread(
        target=producer_main,
        args=(
            io.BytesIO(b'{"n": 1}\n{"n": 2}\n{"n": 3}\n'),
            q,
            stop,
            PipelineMetrics(),
            ProducerConfig(put_timeout_sec=0.01),
        ),
    )
    t.start()
    stop.set()
    t.join(timeout=5)

    assert not t.is_alive()
