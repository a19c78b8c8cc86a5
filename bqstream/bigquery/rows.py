from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from bqstream.bigquery.identity import Record, RowIdentity


@dataclass(frozen=True)
class Row:
    """
    Строка запроса insertAll.

    :ivar insert_id: Ключ дедупликации (пустая строка — без дедупликации).
    :ivar json: Исходная запись без изменений.
    """

    insert_id: str
    json: Mapping[str, Any]


@dataclass(frozen=True)
class InsertBatch:
    """
    Один запрос insertAll: все строки буфера на момент flush.

    :ivar rows: Строки в порядке вставки.
    :ivar template_suffix: templateSuffix таблицы или None.
    :ivar ignore_unknown_values: Разрешить поля, которых нет в схеме.
    """

    rows: List[Row]
    template_suffix: Optional[str]
    ignore_unknown_values: bool

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def json_rows(self) -> List[Mapping[str, Any]]:
        return [r.json for r in self.rows]

    @property
    def row_ids(self) -> List[Optional[str]]:
        """
        insertId для каждой строки.

        Пустой insertId отправляется как None: для BigQuery это "без
        дедупликации", а пустые строки считались бы одинаковыми ключами.

        :return: Список insertId (или None) в порядке строк.
        """
        return [r.insert_id or None for r in self.rows]


def build_row(identity: RowIdentity, record: Record) -> Row:
    """
    Собирает строку для буфера из записи и её insertId.

    :param identity: Политика вычисления insertId.
    :param record: Декодированная JSON-запись.
    :return: Row.
    :raises IdentityError: Если insertId вычислить нельзя; строка не создаётся.
    """
    return Row(insert_id=identity.identity(record), json=record)
