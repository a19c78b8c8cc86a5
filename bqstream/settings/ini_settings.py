import configparser
from dataclasses import dataclass
from pathlib import Path

from bqstream.utils.errors import SettingsError

# ставится вместе с пакетом (package-data в pyproject.toml)
CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.ini"


@dataclass(frozen=True)
class IniSettings:
    """
    Класс для загрузки и валидации настроек из INI-файла.

    Отвечает за:
    - проверку существования конфигурационного файла;
    - чтение INI-файла;
    - валидацию обязательных секций и ключей;
    - предоставление настроек в виде неизменяемого объекта.

    Значения из INI — это значения по умолчанию, флаги командной строки
    их переопределяют.
    """

    flush_interval_sec: float
    flush_size: int
    queue_maxsize: int
    ignore_unknown: bool
    log_level: str
    log_interval_sec: float

    # имя_поля_в_классе -> (секция, ключ)
    _MAP = {
        "flush_interval_sec": ("PIPELINE", "flush_interval_sec"),
        "flush_size": ("PIPELINE", "flush_size"),
        "queue_maxsize": ("PIPELINE", "queue_maxsize"),
        "ignore_unknown": ("BIGQUERY", "ignore_unknown"),
        "log_level": ("LOG", "level"),
        "log_interval_sec": ("LOG", "log_interval_sec"),
    }

    @classmethod
    def load(cls, path: Path = CONFIG_PATH) -> "IniSettings":
        """
        Загружает и валидирует настройки из INI-файла.

        :param path: Путь к INI-файлу конфигурации.
        :return: Экземпляр IniSettings с загруженными настройками.
        :raises SettingsError: Если файл не найден, не прочитан или с ошибками.
        """
        if not path.exists():
            raise SettingsError(f"INI файл не найден: {path}")

        parser = configparser.ConfigParser()
        if not parser.read(path):
            raise SettingsError(f"Не удалось прочитать INI файл: {path}")

        raw_data = {
            field: cls._required(parser, sec, key, path)
            for field, (sec, key) in cls._MAP.items()
        }
        data = cls._cast_types(raw_data)
        return cls(**data)

    @staticmethod
    def _required(
        parser: configparser.ConfigParser, section: str, key: str, path: Path
    ) -> str:
        """
        Возвращает обязательный параметр из указанной секции INI-файла.

        Метод выполняет строгую валидацию:
        - проверяет наличие секции;
        - проверяет наличие ключа в секции;
        - проверяет, что значение ключа не пустое.

        :param parser: Экземпляр ConfigParser с загруженным INI-файлом.
        :param section: Имя секции INI-файла.
        :param key: Имя параметра в секции.
        :param path: Путь к INI-файлу (для сообщений об ошибках).
        :return: Значение параметра в виде строки.
        :raises SettingsError: Если секция, ключ отсутствуют или значение пустое.
        """
        if not parser.has_section(section):
            raise SettingsError(f"Секция [{section}] отсутствует в {path.name}")

        if not parser.has_option(section, key):
            raise SettingsError(
                f"Ключ '{key}' отсутствует в секции [{section}] ({path.name})"
            )

        value = parser.get(section, key)
        if not value.strip():
            raise SettingsError(
                f"Ключ '{key}' в секции [{section}] пустой ({path.name})"
            )

        return value

    @classmethod
    def _cast_types(cls, raw: dict[str, str]) -> dict[str, object]:
        """Приводит строковые значения из INI к типам, указанным в аннотациях IniSettings."""
        result: dict[str, object] = {}

        for field, value in raw.items():
            target_type = cls.__annotations__[field]

            try:
                if target_type is bool:
                    result[field] = value.strip().lower() in {"1", "true", "yes", "on"}
                elif target_type is int:
                    result[field] = int(value)
                elif target_type is float:
                    result[field] = float(value)
                else:
                    result[field] = value.strip()
            except ValueError as e:
                raise SettingsError(
                    f"Некорректное значение для '{field}': {value}"
                ) from e

        return result
