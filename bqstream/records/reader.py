import json
from dataclasses import dataclass
from typing import IO, Any, Dict, Iterator, Optional

from bqstream.utils.errors import RecordDecodeError


@dataclass
class ReaderStats:
    """
    Счётчики работы построчного ридера NDJSON.

    :ivar lines_read: Количество прочитанных строк.
    :ivar records_emitted: Количество успешно декодированных записей.
    :ivar bytes_read: Количество прочитанных байт (для текстовых потоков — символов).
    """

    lines_read: int = 0
    records_emitted: int = 0
    bytes_read: int = 0


def decode_record(line: bytes | str, line_no: int) -> Dict[str, Any]:
    """
    Декодирует одну строку NDJSON в запись.

    Правила:
    - строка должна быть ровно одним JSON-объектом;
    - пустая строка, массив, число и т.п. — ошибка;
    - битый UTF-8 — ошибка.

    :param line: Строка входа (bytes или str), с переводом строки или без.
    :param line_no: Номер строки (с 1), попадает в текст ошибки.
    :return: Словарь с полями записи.
    :raises RecordDecodeError: Если строка не является JSON-объектом.
    """
    try:
        value = json.loads(line)
    except UnicodeDecodeError as e:
        raise RecordDecodeError(line_no, f"invalid utf-8: {e}") from e
    except json.JSONDecodeError as e:
        raise RecordDecodeError(line_no, f"invalid json: {e}") from e

    if not isinstance(value, dict):
        raise RecordDecodeError(
            line_no, f"expected JSON object, got {type(value).__name__}"
        )
    return value


def iter_records(
    stream: IO[Any],
    stats: Optional[ReaderStats] = None,
) -> Iterator[Dict[str, Any]]:
    """
    Итерирует по потоку и возвращает по одной записи на строку.

    Восстановления после ошибок нет: первая же некорректная строка
    останавливает итерацию исключением.

    :param stream: Бинарный или текстовый поток (например, sys.stdin.buffer).
    :param stats: Опциональный объект ReaderStats для накопления статистики.
    :yield: Запись (dict) для каждой строки в порядке входа.
    :raises RecordDecodeError: На первой строке, которая не JSON-объект.
    """
    if stats is None:
        stats = ReaderStats()

    for line_no, line in enumerate(stream, start=1):
        stats.lines_read += 1
        stats.bytes_read += len(line)

        record = decode_record(line, line_no)
        stats.records_emitted += 1
        yield record
