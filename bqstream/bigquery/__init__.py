from bqstream.bigquery.client import BigQuerySink, RowError, Sink
from bqstream.bigquery.destination import Destination
from bqstream.bigquery.identity import (
    AttributeIdentity,
    EmptyIdentity,
    RowIdentity,
    identity_for,
)
from bqstream.bigquery.rows import InsertBatch, Row, build_row

__all__ = [
    "AttributeIdentity",
    "BigQuerySink",
    "Destination",
    "EmptyIdentity",
    "InsertBatch",
    "Row",
    "RowError",
    "RowIdentity",
    "Sink",
    "build_row",
    "identity_for",
]
