import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from bqstream.utils.errors import SettingsError


@dataclass(frozen=True)
class EnvSettings:
    """
    Класс для загрузки и валидации настроек из переменных окружения.

    Отвечает за:
    - чтение GCP project id по умолчанию (GOOGLE_CLOUD_PROJECT / GCP_PROJECT);
    - чтение пути к INI-файлу (BQSTREAM_CONFIG);
    - проверку, что файл с ключом сервисного аккаунта существует, если задан.

    Сами credentials читает google-auth (Application Default Credentials),
    здесь только ранняя валидация.
    """

    project_id: Optional[str]
    config_path: Optional[Path]
    credentials_path: Optional[Path]

    @classmethod
    def load(cls) -> "EnvSettings":
        """
        Загружает и валидирует настройки из переменных окружения.

        :return: Экземпляр EnvSettings.
        :raises SettingsError: Если путь из переменной окружения не существует.
        """
        project_id = cls._optional("GOOGLE_CLOUD_PROJECT") or cls._optional(
            "GCP_PROJECT"
        )
        return cls(
            project_id=project_id,
            config_path=cls._path("BQSTREAM_CONFIG"),
            credentials_path=cls._path("GOOGLE_APPLICATION_CREDENTIALS"),
        )

    @staticmethod
    def _optional(name: str) -> Optional[str]:
        """
        Возвращает значение переменной окружения или None, если она пуста.

        :param name: Имя переменной окружения.
        :return: Строка без пробелов по краям или None.
        """
        value = os.getenv(name)
        if value is None or value.strip() == "":
            return None
        return value.strip()

    @classmethod
    def _path(cls, name: str) -> Optional[Path]:
        """
        Возвращает путь из переменной окружения.

        :param name: Имя переменной окружения.
        :return: Path или None, если переменная не задана.
        :raises SettingsError: Если файл по указанному пути не существует.
        """
        value = cls._optional(name)
        if value is None:
            return None
        path = Path(value).expanduser()
        if not path.exists():
            raise SettingsError(f"ENV {name} указывает на несуществующий файл: {path}")
        return path
