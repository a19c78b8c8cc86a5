from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from bqstream.settings.env_settings import EnvSettings
from bqstream.settings.ini_settings import CONFIG_PATH, IniSettings


@dataclass(frozen=True)
class AppSettings:
    """
    Главный класс настроек приложения.

    Объединяет настройки из различных источников:
    - переменные окружения (EnvSettings);
    - INI-файлы конфигурации (IniSettings).
    """

    env: EnvSettings
    ini: IniSettings


def load_settings(config_path: Optional[Path] = None) -> AppSettings:
    """
    Загружает и валидирует все настройки приложения.

    Путь к INI выбирается так: явный аргумент (флаг --config),
    затем ENV BQSTREAM_CONFIG, затем config.ini из пакета bqstream.

    :param config_path: Явный путь к INI-файлу.
    :return: Экземпляр AppSettings с валидированными настройками.
    :raises SettingsError: Если произошла ошибка при загрузке
                           или валидации настроек.
    """
    env = EnvSettings.load()
    ini = IniSettings.load(config_path or env.config_path or CONFIG_PATH)
    return AppSettings(env=env, ini=ini)
