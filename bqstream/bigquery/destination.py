from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Destination:
    """
    Таблица назначения в BigQuery.

    Если задан suffix, строки вставляются в шаблонную таблицу
    table_id + "_" + suffix (шардирование по дате, например YYYYMMDD).
    BigQuery создаёт такую таблицу сам по схеме базовой table_id.

    :ivar project_id: GCP project id.
    :ivar dataset_id: Идентификатор датасета.
    :ivar table_id: Идентификатор (базовой) таблицы.
    :ivar suffix: Суффикс таблицы, пустая строка — без суффикса.
    """

    project_id: str
    dataset_id: str
    table_id: str
    suffix: str = ""

    @property
    def table_path(self) -> str:
        """
        Полное имя базовой таблицы в формате project.dataset.table.

        :return: Строка с полным именем таблицы.
        """
        return f"{self.project_id}.{self.dataset_id}.{self.table_id}"

    @property
    def template_suffix(self) -> Optional[str]:
        """
        Значение templateSuffix для запроса insertAll.

        :return: "_" + suffix или None, если суффикс не задан.
        """
        if not self.suffix:
            return None
        return f"_{self.suffix}"

    def __str__(self) -> str:
        if self.suffix:
            return f"{self.table_path} (suffix {self.template_suffix})"
        return self.table_path
