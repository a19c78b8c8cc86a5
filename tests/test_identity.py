import pytest

from bqstream.bigquery.identity import AttributeIdentity, EmptyIdentity, identity_for
from bqstream.bigquery.rows import build_row
from bqstream.utils.errors import IdentityTypeError, MissingIdentityAttributeError


def test_empty_identity_always_blank():
    """EmptyIdentity даёт пустой insertId для любой записи."""
    ident = EmptyIdentity()

    assert ident.identity({}) == ""
    assert ident.identity({"id": "abc"}) == ""


def test_attribute_identity_returns_string_value():
    ident = AttributeIdentity("id")

    assert ident.identity({"id": "abc", "v": 1}) == "abc"


def test_attribute_identity_missing_field():
    """
    Запись без атрибута insertId — ошибка, в тексте имя атрибута.
    """
    with pytest.raises(MissingIdentityAttributeError) as exc:
        AttributeIdentity("id").identity({"v": 1})

    assert exc.value.name == "id"
    assert "id" in str(exc.value)


@pytest.mark.parametrize("value", [42, None, True, {"a": 1}, ["x"]])
def test_attribute_identity_rejects_non_string(value):
    with pytest.raises(IdentityTypeError):
        AttributeIdentity("id").identity({"id": value})


def test_identity_for_picks_policy():
    assert isinstance(identity_for(""), EmptyIdentity)
    assert isinstance(identity_for(None), EmptyIdentity)

    ident = identity_for("eventId")
    assert isinstance(ident, AttributeIdentity)
    assert ident.name == "eventId"


def test_build_row_keeps_record():
    record = {"id": "abc", "nested": {"a": [1, 2]}}
    row = build_row(AttributeIdentity("id"), record)

    assert row.insert_id == "abc"
    assert row.json == record


def test_build_row_propagates_identity_error():
    with pytest.raises(MissingIdentityAttributeError):
        build_row(AttributeIdentity("id"), {"v": 1})
