"""Tests for reference normalization."""

from uuid import uuid4

import pytest
from pydantic import TypeAdapter

from app.checkin.refs import (
    ExpandedRef,
    IdRef,
    Ref,
    expanded_value,
    ref_id,
    same_ref,
    to_ref,
)


class TestToRef:
    """Tests for building a Ref from raw values."""

    def test_bare_string(self):
        ref = to_ref("e1")
        assert isinstance(ref, IdRef)
        assert ref.id == "e1"

    def test_populated_object(self):
        ref = to_ref({"_id": "e1", "eventName": "Day 1"})
        assert isinstance(ref, ExpandedRef)
        assert ref.id == "e1"
        assert ref.value["eventName"] == "Day 1"

    def test_object_without_id_uses_string_form(self):
        raw = {"eventName": "Day 1"}
        assert to_ref(raw).id == str(raw)

    def test_uuid_and_numbers_compare_by_string(self):
        value = uuid4()
        assert to_ref(value).id == str(value)
        assert to_ref(42).id == "42"

    def test_none_stays_none(self):
        assert to_ref(None) is None
        assert ref_id(None) is None

    def test_ref_passes_through(self):
        ref = IdRef(id="x")
        assert to_ref(ref) is ref

    def test_refs_are_frozen(self):
        ref = IdRef(id="x")
        with pytest.raises(Exception):
            ref.id = "y"


class TestRefHelpers:
    """Tests for comparisons and lookups on references."""

    def test_same_ref_across_forms(self):
        assert same_ref("e1", {"_id": "e1", "eventName": "Day 1"})
        assert not same_ref("e1", "e2")

    def test_missing_never_matches(self):
        assert not same_ref(None, None)
        assert not same_ref(None, "e1")

    def test_expanded_value(self):
        assert expanded_value({"_id": "i1", "style": "Nike"}) == {"_id": "i1", "style": "Nike"}
        assert expanded_value("i1") is None

    def test_discriminated_union_validation(self):
        adapter = TypeAdapter(Ref)
        assert isinstance(adapter.validate_python({"kind": "id", "id": "a"}), IdRef)
        parsed = adapter.validate_python({"kind": "expanded", "id": "a", "value": {"_id": "a"}})
        assert isinstance(parsed, ExpandedRef)
