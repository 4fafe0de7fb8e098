"""Tests for the hybrid resource model."""
import pytest
from pydantic import ValidationError

from asana_core.errors import MalformedResource
from asana_core.models import Page, Reference, Resource, unwrap_data


class TestResourceDecoding:
    """Test decode/encode of resources."""

    def test_unknown_fields_and_nulls_survive(self):
        """Fields the model does not know about come back unchanged."""
        raw = {
            "gid": "1201",
            "resource_type": "task",
            "name": "Write docs",
            "due_on": None,
            "custom_fields": [{"gid": "9", "display_value": "High"}],
            "brand_new_remote_field": {"nested": True},
        }
        assert Resource.decode(raw).encode() == raw

    def test_absent_typed_fields_are_not_invented(self):
        raw = {"gid": "1", "name": "no type"}
        encoded = Resource.decode(raw).encode()
        assert encoded == raw
        assert "resource_type" not in encoded

    def test_numeric_gid_is_rejected(self):
        with pytest.raises(MalformedResource) as exc_info:
            Resource.decode({"gid": 12345678901234567890, "name": "big"}, kind="task")
        assert exc_info.value.kind == "task"

    def test_missing_gid_is_rejected_when_required(self):
        with pytest.raises(MalformedResource, match="missing gid"):
            Resource.decode({"name": "anonymous"})

    def test_missing_gid_allowed_when_not_required(self):
        resource = Resource.decode({"name": "anonymous"}, require_gid=False)
        assert resource.gid is None
        assert resource.get("name") == "anonymous"

    def test_non_object_is_rejected(self):
        with pytest.raises(MalformedResource, match="expected a JSON object"):
            Resource.decode(["gid", "1"])

    def test_get_reads_typed_and_extension_fields(self):
        resource = Resource.decode({"gid": "1", "resource_type": "project", "color": "red"})
        assert resource.get("gid") == "1"
        assert resource.get("resource_type") == "project"
        assert resource.get("color") == "red"
        assert resource.get("missing", "fallback") == "fallback"
        assert resource.fields == {"color": "red"}


class TestResourceMerge:
    """Test enriching a listed resource with its full fetch."""

    def test_newer_fields_overwrite_and_older_fields_remain(self):
        listed = Resource.decode({"gid": "1", "resource_type": "project", "name": "old", "color": "red"})
        fetched = Resource.decode({"gid": "1", "name": "new", "owner": None})

        merged = listed.merge(fetched)

        assert merged.encode() == {
            "gid": "1",
            "resource_type": "project",
            "name": "new",
            "color": "red",
            "owner": None,
        }

    def test_newer_resource_type_wins(self):
        listed = Resource.decode({"gid": "1", "resource_type": "portfolio_item"})
        fetched = Resource.decode({"gid": "1", "resource_type": "portfolio"})
        assert listed.merge(fetched).resource_type == "portfolio"


class TestReference:
    """Test lightweight references."""

    def test_reference_is_frozen(self):
        reference = Reference(gid="7", resource_type="task")
        with pytest.raises(ValidationError):
            reference.gid = "8"

    def test_encode_omits_unknown_kind(self):
        assert Reference(gid="7").encode() == {"gid": "7"}


class TestPage:
    """Test the list envelope."""

    def test_decode_with_cursor(self):
        page = Page.decode({
            "data": [{"gid": "1"}, {"gid": "2"}],
            "next_page": {"offset": "eyJ0eXAi", "path": "/tasks", "uri": "https://x/tasks"},
        })
        assert [item.gid for item in page.items] == ["1", "2"]
        assert page.next_offset == "eyJ0eXAi"

    def test_null_next_page_means_last_page(self):
        page = Page.decode({"data": [], "next_page": None})
        assert page.items == []
        assert page.next_offset is None

    def test_missing_data_array_is_malformed(self):
        with pytest.raises(MalformedResource):
            Page.decode({"next_page": None})

    def test_non_string_cursor_is_malformed(self):
        with pytest.raises(MalformedResource, match="offset"):
            Page.decode({"data": [], "next_page": {"offset": 42}})

    def test_encode(self):
        page = Page.decode({"data": [{"gid": "1", "name": "a"}], "next_page": {"offset": "n"}})
        assert page.encode() == {"data": [{"gid": "1", "name": "a"}], "next_page": {"offset": "n"}}


class TestUnwrapData:
    def test_unwraps_single_object(self):
        assert unwrap_data({"data": {"gid": "1"}}) == {"gid": "1"}

    def test_missing_envelope_is_malformed(self):
        with pytest.raises(MalformedResource):
            unwrap_data({"gid": "1"}, kind="task", gid="1")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
