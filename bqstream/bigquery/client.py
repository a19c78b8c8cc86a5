"""BigQuery sink: existence check and streaming inserts (insertAll)."""

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Protocol, Sequence

from google.api_core.exceptions import NotFound
from google.cloud import bigquery
from google.cloud.bigquery.enums import AutoRowIDs

from bqstream.bigquery.destination import Destination
from bqstream.bigquery.rows import InsertBatch
from bqstream.settings.logging import logger


@dataclass(frozen=True)
class RowError:
    """
    Ошибка одной строки в ответе insertAll.

    :ivar index: Индекс строки в отправленном батче.
    :ivar messages: Тексты ошибок BigQuery для этой строки.
    """

    index: int
    messages: List[str]


class Sink(Protocol):
    """Приёмник батчей. Реализуется BigQuerySink и фейками в тестах."""

    def destination_exists(self, destination: Destination) -> bool: ...

    def insert_batch(
        self, destination: Destination, batch: InsertBatch
    ) -> List[RowError]: ...


def parse_insert_errors(errors: Sequence[Mapping[str, Any]]) -> List[RowError]:
    """
    Преобразует insertErrors из ответа BigQuery в список RowError.

    Формат элемента ответа:
    {"index": 3, "errors": [{"reason": "invalid", "message": "..."}]}

    :param errors: Список ошибок, как его возвращает insert_rows_json.
    :return: Список RowError в порядке ответа.
    """
    out: List[RowError] = []
    for e in errors:
        messages = [
            str(item.get("message") or item.get("reason") or item)
            for item in e.get("errors", [])
        ]
        out.append(RowError(index=int(e["index"]), messages=messages or ["unknown error"]))
    return out


class BigQuerySink:
    """
    Обёртка над google.cloud.bigquery.Client для streaming inserts.

    Ретраи клиента отключены: любая ошибка транспорта сразу поднимается
    наверх и останавливает pipeline.

    :param project_id: GCP project для клиента; None — из ADC.
    :param client: Готовый клиент (для тестов).
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        client: Optional[bigquery.Client] = None,
    ) -> None:
        self._client = client or bigquery.Client(project=project_id)

    def destination_exists(self, destination: Destination) -> bool:
        """
        Проверяет, что базовая таблица назначения существует.

        :param destination: Таблица назначения.
        :return: True, если таблица есть, False при 404.
        :raises GoogleAPIError: Прочие ошибки API (права, сеть и т.п.).
        """
        try:
            table = self._client.get_table(destination.table_path)
        except NotFound:
            return False
        return table is not None

    def insert_batch(
        self, destination: Destination, batch: InsertBatch
    ) -> List[RowError]:
        """
        Отправляет батч одним вызовом insertAll.

        :param destination: Таблица назначения.
        :param batch: Строки, templateSuffix и флаг ignoreUnknownValues.
        :return: Ошибки отдельных строк (пустой список — все строки приняты).
        :raises GoogleAPIError: Если сам вызов завершился ошибкой.
        """
        row_ids = batch.row_ids
        if not any(row_ids):
            row_ids = AutoRowIDs.DISABLED

        logger.debug(
            "insertAll %s rows=%s template_suffix=%s",
            destination.table_path,
            len(batch),
            batch.template_suffix,
        )
        errors = self._client.insert_rows_json(
            destination.table_path,
            batch.json_rows,
            row_ids=row_ids,
            ignore_unknown_values=batch.ignore_unknown_values,
            template_suffix=batch.template_suffix,
            retry=None,
        )
        return parse_insert_errors(errors)
