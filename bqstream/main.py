import argparse
import re
import sys
from pathlib import Path
from typing import Optional, Sequence

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from requests.exceptions import RequestException

from bqstream.bigquery.client import BigQuerySink, Sink
from bqstream.bigquery.destination import Destination
from bqstream.bigquery.identity import identity_for
from bqstream.pipeline.coordinator import PipelineConfig, run_pipeline
from bqstream.pipeline.inserter import InserterConfig
from bqstream.settings.logging import logger, set_level
from bqstream.settings.settings import AppSettings, load_settings
from bqstream.utils.errors import BqStreamError, DestinationError, SettingsError

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str) -> float:
    """
    Разбирает длительность вида "5s", "500ms", "1m", "2h" или "2.5".

    Число без единицы — секунды.

    :param value: Строка длительности.
    :return: Длительность в секундах.
    :raises argparse.ArgumentTypeError: Если формат некорректен или длительность 0.
    """
    m = _DURATION_RE.match(value)
    if m is None:
        raise argparse.ArgumentTypeError(f"invalid duration: {value!r}")
    seconds = float(m.group(1)) * _DURATION_UNITS[m.group(2) or "s"]
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"duration must be positive: {value!r}")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bqstream",
        description="Stream newline-delimited JSON from stdin to BigQuery",
    )
    parser.add_argument(
        "--project-id",
        help="Google Cloud Project ID (default: GOOGLE_CLOUD_PROJECT)",
    )
    parser.add_argument("--dataset-id", required=True, help="BigQuery Dataset ID")
    parser.add_argument(
        "--table-id",
        required=True,
        help="BigQuery Table ID. If a suffix is used, data will be inserted "
        "into table-id_suffix.",
    )
    parser.add_argument(
        "--table-suffix",
        default="",
        help="BigQuery Table suffix. Can be used when time sharding tables. YYYYMMDD",
    )
    parser.add_argument(
        "--insert-id",
        default="",
        help="Attribute name in JSON record that uniquely identifies record. "
        "Can be used to deduplicate BigQuery insertions.",
    )
    parser.add_argument(
        "--flush-interval",
        type=parse_duration,
        default=None,
        help="How frequently to stream records to BigQuery, e.g. 5s, 500ms.",
    )
    parser.add_argument(
        "--flush-size",
        type=int,
        default=None,
        help="Maximum number of records to buffer between insertAll calls.",
    )
    parser.add_argument(
        "--ignore-unknown",
        action="store_true",
        default=None,
        help="Accept values that don't match the schema. By default records "
        "with non-matching schemas will be rejected and inserts will fail.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.ini")
    return parser


def build_config(
    args: argparse.Namespace, settings: AppSettings
) -> tuple[Destination, PipelineConfig]:
    """
    Собирает неизменяемую конфигурацию пайплайна из флагов и настроек.

    Флаги командной строки переопределяют значения из config.ini.

    :param args: Разобранные аргументы командной строки.
    :param settings: AppSettings.
    :return: Destination и PipelineConfig.
    :raises SettingsError: Если значения некорректны.
    """
    project_id = args.project_id or settings.env.project_id
    if not project_id:
        raise SettingsError("--project-id не задан и GOOGLE_CLOUD_PROJECT пуст")

    flush_size = args.flush_size if args.flush_size is not None else settings.ini.flush_size
    if flush_size < 1:
        raise SettingsError(f"flush_size должен быть >= 1, получено: {flush_size}")

    flush_interval = (
        args.flush_interval
        if args.flush_interval is not None
        else settings.ini.flush_interval_sec
    )
    if flush_interval <= 0:
        raise SettingsError(
            f"flush_interval должен быть > 0, получено: {flush_interval}"
        )

    if settings.ini.queue_maxsize < 1:
        raise SettingsError(
            f"queue_maxsize должен быть >= 1, получено: {settings.ini.queue_maxsize}"
        )

    ignore_unknown = (
        args.ignore_unknown
        if args.ignore_unknown is not None
        else settings.ini.ignore_unknown
    )

    destination = Destination(
        project_id=project_id,
        dataset_id=args.dataset_id,
        table_id=args.table_id,
        suffix=args.table_suffix or "",
    )
    cfg = PipelineConfig(
        inserter=InserterConfig(
            destination=destination,
            identity=identity_for(args.insert_id),
            flush_size=flush_size,
            ignore_unknown=ignore_unknown,
        ),
        flush_interval_sec=flush_interval,
        queue_maxsize=settings.ini.queue_maxsize,
        log_interval_sec=settings.ini.log_interval_sec,
    )
    return destination, cfg


def check_destination(sink: Sink, destination: Destination) -> None:
    """
    Проверяет, что таблица назначения существует, до начала чтения stdin.

    :param sink: Приёмник батчей.
    :param destination: Таблица назначения.
    :return: None.
    :raises DestinationError: Если таблицы нет.
    """
    if not sink.destination_exists(destination):
        raise DestinationError(
            f"destination {destination.table_path} doesn't exist, please create first"
        )
    logger.info("Таблица назначения найдена: %s", destination)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Точка входа bqstream.

    Последовательность выполнения:
    1) Читает флаги, config.ini и переменные окружения
    2) Проверяет, что таблица назначения существует
    3) Запускает pipeline stdin → BigQuery и ждёт конца входа или сигнала
    4) Логирует число вставленных строк

    :param argv: Аргументы командной строки (по умолчанию sys.argv).
    :return: Код выхода процесса.
    """
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
        set_level(args.log_level or settings.ini.log_level)
        destination, cfg = build_config(args, settings)
    except (SettingsError, ValueError) as e:
        logger.error("Ошибка при загрузке настроек программы: %s", e)
        return 1

    logger.info("Запуск pipeline: %s", cfg)

    try:
        sink = BigQuerySink(project_id=destination.project_id)
        check_destination(sink, destination)
        result = run_pipeline(cfg, sink, sys.stdin.buffer)
    except (BqStreamError, GoogleAPIError, GoogleAuthError, RequestException) as e:
        logger.error("ERROR: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.error("ERROR: прервано повторным сигналом, буфер не отправлен")
        return 130

    logger.info("Inserted %d rows", result.inserted_rows)
    return 0


if __name__ == "__main__":
    sys.exit(main())
