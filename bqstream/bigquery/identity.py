from typing import Any, Mapping, Protocol

from bqstream.utils.errors import IdentityTypeError, MissingIdentityAttributeError

Record = Mapping[str, Any]


class RowIdentity(Protocol):
    """
    Политика вычисления insertId для записи.

    insertId используется BigQuery для best-effort дедупликации:
    повторная вставка строки с тем же insertId в течение короткого окна
    отбрасывается. Пустая строка означает "без дедупликации".
    """

    def identity(self, record: Record) -> str: ...


class EmptyIdentity:
    """Политика без дедупликации: insertId всегда пустой."""

    def identity(self, record: Record) -> str:
        return ""

    def __repr__(self) -> str:
        return "EmptyIdentity()"


class AttributeIdentity:
    """
    insertId берётся из строкового атрибута записи.

    :param name: Имя атрибута верхнего уровня в JSON-записи.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    def identity(self, record: Record) -> str:
        """
        Возвращает значение атрибута name.

        :param record: Декодированная JSON-запись.
        :return: Строковое значение атрибута.
        :raises MissingIdentityAttributeError: Если атрибута нет в записи.
        :raises IdentityTypeError: Если значение атрибута не строка.
        """
        try:
            value = record[self.name]
        except KeyError:
            raise MissingIdentityAttributeError(self.name) from None

        # bool/int/null в insertId не приводим: ошибка должна быть видна сразу
        if not isinstance(value, str):
            raise IdentityTypeError(self.name, value)
        return value

    def __repr__(self) -> str:
        return f"AttributeIdentity({self.name!r})"


def identity_for(attribute: str | None) -> RowIdentity:
    """
    Выбирает политику insertId по имени атрибута из настроек.

    :param attribute: Имя атрибута или пустое значение.
    :return: AttributeIdentity, если имя задано, иначе EmptyIdentity.
    """
    if not attribute:
        return EmptyIdentity()
    return AttributeIdentity(attribute)
