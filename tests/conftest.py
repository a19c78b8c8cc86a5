import threading
import time
from typing import List, Optional, Tuple

import pytest

from bqstream.bigquery.client import RowError
from bqstream.bigquery.destination import Destination
from bqstream.bigquery.identity import EmptyIdentity
from bqstream.bigquery.rows import InsertBatch
from bqstream.pipeline.inserter import Inserter, InserterConfig


class FakeSink:
    """In-memory приёмник: запоминает батчи вместо вызова BigQuery."""

    def __init__(self, exists: bool = True) -> None:
        self.exists = exists
        self.batches: List[Tuple[Destination, InsertBatch]] = []
        self.row_errors: List[RowError] = []
        self.error: Optional[Exception] = None
        self.delay_sec = 0.0
        self._lock = threading.Lock()

    def destination_exists(self, destination: Destination) -> bool:
        return self.exists

    def insert_batch(
        self, destination: Destination, batch: InsertBatch
    ) -> List[RowError]:
        if self.delay_sec:
            time.sleep(self.delay_sec)
        with self._lock:
            self.batches.append((destination, batch))
        if self.error is not None:
            raise self.error
        return list(self.row_errors)

    @property
    def sent_records(self) -> list:
        return [r.json for _dest, b in self.batches for r in b.rows]


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def destination() -> Destination:
    return Destination(project_id="proj", dataset_id="ds", table_id="events")


@pytest.fixture
def make_inserter(sink, destination):
    def _make(flush_size: int = 3, identity=None, **kwargs) -> Inserter:
        cfg = InserterConfig(
            destination=kwargs.pop("destination", destination),
            identity=identity or EmptyIdentity(),
            flush_size=flush_size,
            **kwargs,
        )
        return Inserter(sink, cfg)

    return _make


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def wait():
    return wait_until
