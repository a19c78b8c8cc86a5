import threading
from dataclasses import dataclass
from typing import List, Optional

from bqstream.bigquery.client import Sink
from bqstream.bigquery.destination import Destination
from bqstream.bigquery.identity import Record, RowIdentity
from bqstream.bigquery.rows import InsertBatch, Row, build_row
from bqstream.pipeline.metrics import PipelineMetrics
from bqstream.settings.logging import logger
from bqstream.utils.errors import RowInsertError


@dataclass(frozen=True)
class InserterConfig:
    """
    Конфигурация Inserter.

    :param destination: Таблица назначения.
    :param identity: Политика вычисления insertId.
    :param flush_size: Сколько строк копить до синхронного flush.
    :param ignore_unknown: ignoreUnknownValues для insertAll.
    """

    destination: Destination
    identity: RowIdentity
    flush_size: int = 50
    ignore_unknown: bool = False


class Inserter:
    """
    Буфер строк перед отправкой в BigQuery.

    Строки копятся в буфере и уходят одним вызовом insertAll, когда:
    - буфер достиг flush_size (синхронно внутри insert);
    - сработал интервальный flusher;
    - пришёл сигнал прерывания.

    Все три триггера вызывают flush() на одном экземпляре из разных потоков.
    Один Lock покрывает и добавление строки, и весь flush, включая сетевой
    вызов: пока батч в полёте, остальные вызовы ждут.

    :param sink: Приёмник батчей (BigQuerySink или фейк).
    :param cfg: InserterConfig.
    :param metrics: Общие метрики пайплайна (опционально).
    """

    def __init__(
        self,
        sink: Sink,
        cfg: InserterConfig,
        metrics: Optional[PipelineMetrics] = None,
    ) -> None:
        if cfg.flush_size < 1:
            raise ValueError(f"flush_size must be >= 1, got {cfg.flush_size}")

        self.sink = sink
        self.cfg = cfg
        self.metrics = metrics or PipelineMetrics()

        self._lock = threading.Lock()
        self._rows: List[Row] = []
        self._inserted: int = 0

    def __len__(self) -> int:
        """
        Возвращает текущее количество строк в буфере.

        :return: Количество строк в буфере.
        """
        return len(self._rows)

    @property
    def pending_rows(self) -> int:
        """
        То же, что len(inserter), в виде свойства для логов прогресса.

        Читается без блокировки: значение может устареть к моменту
        использования, поэтому годится только для отчётов.

        :return: Количество строк в буфере.
        """
        return len(self)

    @property
    def inserted_row_count(self) -> int:
        """
        Сколько строк BigQuery подтвердил за всё время работы.

        Учитываются только полностью успешные flush.

        :return: Количество вставленных строк.
        """
        return self._inserted

    def insert(self, record: Record) -> None:
        """
        Добавляет запись в буфер.

        Если после добавления буфер заполнен — сразу делает flush.

        :param record: Декодированная JSON-запись.
        :return: None.
        :raises IdentityError: Если не удалось вычислить insertId;
                               буфер при этом не меняется.
        :raises RowInsertError: Если flush по размеру отклонил строки.
        :raises GoogleAPIError: Если flush по размеру упал на вызове API.
        """
        row = build_row(self.cfg.identity, record)

        with self._lock:
            self._rows.append(row)
            self.metrics.inc("records_buffered", 1)

            if len(self._rows) >= self.cfg.flush_size:
                self._flush_locked(reason="size")

    def flush(self, reason: str = "manual") -> None:
        """
        Отправляет все строки буфера одним вызовом insertAll.

        Пустой буфер — no-op без сетевого вызова.
        Строки упавшего батча не возвращаются в буфер.

        :param reason: Что вызвало flush (для логов).
        :return: None.
        :raises RowInsertError: Если BigQuery отклонил одну или больше строк.
        :raises GoogleAPIError: Если сам вызов insertAll завершился ошибкой.
        """
        with self._lock:
            self._flush_locked(reason=reason)

    def _flush_locked(self, reason: str) -> None:
        """
        Тело flush. Вызывается только под self._lock.

        :param reason: Что вызвало flush (для логов).
        :return: None.
        """
        if not self._rows:
            return

        rows = self._rows
        self._rows = []

        batch = InsertBatch(
            rows=rows,
            template_suffix=self.cfg.destination.template_suffix,
            ignore_unknown_values=self.cfg.ignore_unknown,
        )

        try:
            row_errors = self.sink.insert_batch(self.cfg.destination, batch)
        except Exception:
            self.metrics.inc("flush_errors", 1)
            logger.error(
                "insertAll failed (%s), dropped %s rows", reason, len(rows)
            )
            raise

        if row_errors:
            self.metrics.inc("flush_errors", 1)
            failures = [
                (e.index, message, rows[e.index].json if 0 <= e.index < len(rows) else {})
                for e in row_errors
                for message in e.messages
            ]
            raise RowInsertError(failures)

        self._inserted += len(rows)
        self.metrics.inc("batches_flushed", 1)
        self.metrics.inc("rows_inserted", len(rows))
        logger.info("Flushed %s records (%s)", len(rows), reason)
