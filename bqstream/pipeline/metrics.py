import threading
from dataclasses import dataclass
from time import monotonic
from typing import Dict


@dataclass(frozen=True)
class MetricsSnapshot:
    """
    Снимок метрик пайплайна.

    :param ts: Timestamp monotonic (секунды) на момент снимка.
    :param records_read: Сколько строк входа декодировано в записи.
    :param records_buffered: Сколько записей принято в буфер inserter-а.
    :param batches_flushed: Сколько батчей успешно отправлено в BigQuery.
    :param rows_inserted: Сколько строк подтверждено BigQuery.
    :param flush_errors: Сколько flush завершились ошибкой.
    """

    ts: float
    records_read: int
    records_buffered: int
    batches_flushed: int
    rows_inserted: int
    flush_errors: int

    def as_dict(self) -> Dict[str, int | float]:
        """
        Преобразует снимок метрик в словарь.

        :return: Словарь со значениями метрик и timestamp.
        """
        return {
            "ts": self.ts,
            "records_read": self.records_read,
            "records_buffered": self.records_buffered,
            "batches_flushed": self.batches_flushed,
            "rows_inserted": self.rows_inserted,
            "flush_errors": self.flush_errors,
        }


class PipelineMetrics:
    """
    Счётчики пайплайна, общие для потоков producer/consumer/flusher.

    Один общий Lock: инкременты атомарны, снимок консистентен.
    """

    FIELDS = (
        "records_read",
        "records_buffered",
        "batches_flushed",
        "rows_inserted",
        "flush_errors",
    )

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: Dict[str, int] = {name: 0 for name in self.FIELDS}

    def inc(self, field: str, delta: int = 1) -> None:
        """
        Потокобезопасно увеличивает указанный счётчик.

        :param field: Имя счётчика из FIELDS.
        :param delta: На сколько увеличить.
        :return: None.
        :raises KeyError: Если счётчик неизвестен.
        """
        if field not in self._values:
            raise KeyError(field)
        if delta == 0:
            return
        with self._lock:
            self._values[field] += int(delta)

    def snapshot(self) -> MetricsSnapshot:
        """
        Делает консистентный снимок всех счётчиков.

        :return: MetricsSnapshot.
        """
        with self._lock:
            return MetricsSnapshot(ts=monotonic(), **self._values)
