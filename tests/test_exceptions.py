"""Tests for the exception hierarchy and its ``to_dict`` payloads."""

from __future__ import annotations

from schema_crud.exceptions import (
    CrudError,
    FilterError,
    InvalidFieldReferenceError,
    NotFoundError,
    SchemaError,
    SchemaNotFoundError,
    StoreError,
    UnknownEntityError,
    UnsupportedFilterModeError,
)

VALID_MODES = ["EQ", "EX", "LT", "GT", "RG", "EM", "NEM"]


def test_hierarchy():
    assert issubclass(SchemaNotFoundError, SchemaError)
    assert issubclass(UnknownEntityError, SchemaError)
    assert issubclass(UnsupportedFilterModeError, FilterError)
    assert issubclass(InvalidFieldReferenceError, FilterError)
    assert issubclass(NotFoundError, StoreError)
    for cls in (SchemaError, FilterError, StoreError):
        assert issubclass(cls, CrudError)


def test_base_to_dict():
    d = StoreError("boom").to_dict()
    assert d == {"error": "StoreError", "message": "boom"}


# -- UnsupportedFilterModeError ----------------------------------------------


def test_unsupported_mode_fuzzy_suggestion():
    err = UnsupportedFilterModeError("NEMM", VALID_MODES)
    assert "NEMM" in str(err)
    assert "NEM" in err.suggestions


def test_unsupported_mode_to_dict():
    d = UnsupportedFilterModeError("FOO", VALID_MODES).to_dict()
    assert d["error"] == "UNSUPPORTED_FILTER_MODE"
    assert d["mode"] == "FOO"
    assert d["valid_modes"] == VALID_MODES
    assert d["suggestions"] == []


# -- InvalidFieldReferenceError ----------------------------------------------


def test_invalid_field_fuzzy():
    err = InvalidFieldReferenceError("nme", "User", ["name", "email", "id"])
    assert "nme" in str(err)
    assert "name" in err.suggestions
    assert "Available fields: email, id, name" in str(err)


def test_invalid_field_to_dict():
    err = InvalidFieldReferenceError(
        "titel", "Ticket", ["title", "status"], full_path="assignee.titel"
    )
    d = err.to_dict()
    assert d["error"] == "INVALID_FIELD_REFERENCE"
    assert d["field"] == "titel"
    assert d["entity"] == "Ticket"
    assert d["full_path"] == "assignee.titel"
    assert d["suggestions"] == ["title"]
    assert d["available_fields"] == ["status", "title"]


def test_invalid_field_reason_in_message():
    err = InvalidFieldReferenceError(
        "title", "Ticket", ["title"], reason="'title' is not a relation."
    )
    assert "'title' is not a relation." in str(err)


# -- Schema errors -----------------------------------------------------------


def test_unknown_entity_suggestions():
    err = UnknownEntityError("Tiket", ["Ticket", "User"])
    d = err.to_dict()
    assert d["error"] == "UNKNOWN_ENTITY"
    assert d["suggestions"] == ["Ticket"]
    assert d["available_entities"] == ["Ticket", "User"]
    assert "Did you mean: Ticket?" in str(err)


def test_schema_not_found():
    err = SchemaNotFoundError("schema.json", "missing")
    assert "schema.json" in str(err)
    assert err.to_dict() == {
        "error": "SCHEMA_NOT_FOUND",
        "source": "schema.json",
        "reason": "missing",
    }


def test_not_found():
    err = NotFoundError("Ticket", 42)
    assert str(err) == "Ticket with id=42 not found"
    assert err.to_dict() == {"error": "NOT_FOUND", "entity": "Ticket", "id": 42}
