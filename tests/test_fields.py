"""Tests for detail level -> opt_fields resolution."""
import pytest

from asana_core.fields import FULL_EXTRA_FIELDS, STANDARD_FIELDS, DetailLevel, FieldResolver


class TestFieldResolver:
    """Test opt_fields strings per kind and detail level."""

    def test_minimal_is_identity_fields(self):
        resolver = FieldResolver()
        assert resolver.fields_for("task", DetailLevel.MINIMAL) == "gid,name,resource_type"
        assert resolver.fields_for("portfolio", DetailLevel.MINIMAL) == "gid,name,resource_type"

    def test_standard_uses_curated_table(self):
        fields = FieldResolver().fields_for("section").split(",")
        assert fields == list(STANDARD_FIELDS["section"])

    def test_full_adds_heavy_fields_after_standard(self):
        fields = FieldResolver().fields_for("task", DetailLevel.FULL).split(",")
        standard = list(STANDARD_FIELDS["task"])
        assert fields[:len(standard)] == standard
        assert "html_notes" in fields
        assert len(fields) == len(standard) + len(FULL_EXTRA_FIELDS["task"])

    def test_extra_fields_appended_and_deduplicated(self):
        fields = FieldResolver().fields_for(
            "task", DetailLevel.MINIMAL, ["name", "assignee.email", " assignee.email ", ""]
        )
        assert fields == "gid,name,resource_type,assignee.email"

    def test_unknown_kind_falls_back_to_minimal(self):
        assert FieldResolver().fields_for("goal") == "gid,name,resource_type"

    def test_accepts_level_as_string(self):
        assert FieldResolver().fields_for("tag", "minimal") == "gid,name,resource_type"

    def test_custom_field_set(self):
        class OnlyGid:
            def base_fields(self, kind, level):
                return ["gid"]

        assert FieldResolver(OnlyGid()).fields_for("task", DetailLevel.FULL, ["name"]) == "gid,name"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
