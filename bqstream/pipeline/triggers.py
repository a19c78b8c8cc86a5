import signal
import threading
from contextlib import contextmanager
from typing import Iterator, Sequence

from bqstream.pipeline.inserter import Inserter
from bqstream.settings.logging import logger

INTERRUPT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def interval_flusher_main(
    inserter: Inserter,
    stop_event: threading.Event,
    interval_sec: float,
) -> None:
    """
    Периодический flush буфера, пока pipeline не остановлен.

    Пустой буфер — no-op. Ошибка flush не перехватывается.

    :param inserter: Inserter.
    :param stop_event: Event остановки; будит поток сразу, без ожидания интервала.
    :param interval_sec: Период flush в секундах.
    :return: None.
    """
    while not stop_event.wait(interval_sec):
        inserter.flush(reason="interval")


@contextmanager
def interrupt_handler(
    interrupt_event: threading.Event,
    signals: Sequence[signal.Signals] = INTERRUPT_SIGNALS,
    enabled: bool = True,
) -> Iterator[threading.Event]:
    """
    На время контекста перехватывает сигналы прерывания.

    Обработчик только выставляет interrupt_event; сам flush делает
    coordinator в главном потоке, чтобы не вызывать insertAll из
    обработчика сигнала. После выхода из контекста восстанавливаются
    прежние обработчики.

    Повторный сигнал, пока последний flush ещё идёт (например, завис
    insertAll), поднимает KeyboardInterrupt в главном потоке.

    Сигналы можно перехватить только из главного потока; в других
    потоках контекст ничего не устанавливает.

    :param interrupt_event: Событие, которое выставляется по сигналу.
    :param signals: Какие сигналы перехватывать.
    :param enabled: False — не трогать обработчики сигналов.
    :yield: interrupt_event.
    """
    if not enabled or threading.current_thread() is not threading.main_thread():
        yield interrupt_event
        return

    def _handle(signum, _frame) -> None:
        name = signal.Signals(signum).name
        if interrupt_event.is_set():
            logger.warning("Повторный сигнал %s, выход без ожидания flush", name)
            raise KeyboardInterrupt

        logger.warning("Получен сигнал %s, последний flush", name)
        interrupt_event.set()

    previous = {sig: signal.signal(sig, _handle) for sig in signals}
    try:
        yield interrupt_event
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
