import json
from typing import Any, Mapping, Sequence, Tuple


class BqStreamError(Exception):
    """
    Базовое исключение приложения.

    Все ошибки, которые должны остановить pipeline и завершить процесс
    с ненулевым кодом, наследуются от него.
    """


class SettingsError(BqStreamError):
    """Ошибка загрузки или валидации настроек."""


class DestinationError(BqStreamError):
    """Таблица назначения в BigQuery не существует."""


class RecordDecodeError(BqStreamError):
    """
    Строка входного потока не является JSON-объектом.

    :param line_no: Номер строки во входном потоке (с 1).
    :param reason: Причина ошибки декодирования.
    """

    def __init__(self, line_no: int, reason: str) -> None:
        self.line_no = line_no
        self.reason = reason
        super().__init__(f"line {line_no}: {reason}")


class WorkerStopError(BqStreamError):
    """
    Поток пайплайна не остановился за отведённое время.

    :param names: Имена потоков, которые ещё работают.
    :param timeout_sec: Сколько ждали.
    """

    def __init__(self, names: Sequence[str], timeout_sec: float) -> None:
        self.names = list(names)
        self.timeout_sec = timeout_sec
        super().__init__(
            f"threads still running after {timeout_sec}s: {', '.join(self.names)}"
        )


class IdentityError(BqStreamError):
    """Не удалось вычислить insertId для записи."""


class MissingIdentityAttributeError(IdentityError):
    """В записи нет атрибута, из которого берётся insertId."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"no value for insertId attribute {name} in record")


class IdentityTypeError(IdentityError):
    """Атрибут insertId присутствует, но не является строкой."""

    def __init__(self, name: str, value: Any) -> None:
        self.name = name
        self.value = value
        super().__init__(
            f"insertId attribute {name} must be a string, "
            f"got {type(value).__name__}: {value!r}"
        )


RowFailure = Tuple[int, str, Mapping[str, Any]]


class RowInsertError(BqStreamError):
    """
    BigQuery принял запрос, но отклонил часть строк батча.

    Все ошибки батча собираются в одно сообщение: для каждой ошибки
    индекс строки, текст ошибки и JSON-содержимое строки.

    :param failures: Список (index, message, payload).
    """

    def __init__(self, failures: Sequence[RowFailure]) -> None:
        self.failures = list(failures)
        lines = [
            f"{index}: {message}: {json.dumps(payload, ensure_ascii=False)}"
            for index, message, payload in self.failures
        ]
        super().__init__("insert errors:\n" + "\n".join(lines))

    @property
    def indexes(self) -> list[int]:
        """
        Индексы отклонённых строк без повторов, в порядке появления.

        :return: Список индексов.
        """
        seen: list[int] = []
        for index, _message, _payload in self.failures:
            if index not in seen:
                seen.append(index)
        return seen
