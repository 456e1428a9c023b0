"""Tests for schema compatibility and field type mapping."""

from typing import Optional

import pytest

from bridgex.exceptions import ConfigurationError, IncompatibleSchemaError
from bridgex.objects.column_definition import TransferMethod
from bridgex.objects.column_model import ColumnModel, ColumnType
from bridgex.objects.export_config import FieldDefinition
from bridgex.synapse.schema import (
    ALLOWED_OLD_TYPE_TO_NEW_TYPE,
    build_schema_change_request,
    column_for_field_def,
    get_max_length_for_field_def,
    is_compatible_column,
)


def col(column_type: ColumnType, maximum_size: Optional[int] = None, name: str = "foo", id: Optional[str] = None) -> ColumnModel:
    return ColumnModel(id=id, name=name, column_type=column_type, maximum_size=maximum_size)


@pytest.mark.unit
class TestIsCompatibleColumn:
    """Test is_compatible_column."""

    def test_same_column(self) -> None:
        assert is_compatible_column(col(ColumnType.STRING, 100), col(ColumnType.STRING, 100))

    def test_ids_are_ignored(self) -> None:
        """Only the Synapse copy has an id."""
        assert is_compatible_column(col(ColumnType.INTEGER, id="7"), col(ColumnType.INTEGER))

    def test_name_mismatch(self) -> None:
        assert not is_compatible_column(col(ColumnType.INTEGER, name="a"), col(ColumnType.INTEGER, name="b"))

    def test_integer_to_double(self) -> None:
        assert is_compatible_column(col(ColumnType.INTEGER), col(ColumnType.DOUBLE))

    def test_date_to_string_not_allowed(self) -> None:
        """Epoch millis must not silently become strings."""
        assert not is_compatible_column(col(ColumnType.DATE), col(ColumnType.STRING, 100))

    def test_boolean_to_string_not_allowed(self) -> None:
        assert not is_compatible_column(col(ColumnType.BOOLEAN), col(ColumnType.STRING, 100))

    def test_string_shrink_not_allowed(self) -> None:
        assert not is_compatible_column(col(ColumnType.STRING, 100), col(ColumnType.STRING, 50))

    def test_string_grow_allowed(self) -> None:
        assert is_compatible_column(col(ColumnType.STRING, 50), col(ColumnType.STRING, 100))

    def test_string_to_largetext(self) -> None:
        assert is_compatible_column(col(ColumnType.STRING, 100), col(ColumnType.LARGETEXT))

    def test_largetext_to_string_not_allowed(self) -> None:
        assert not is_compatible_column(col(ColumnType.LARGETEXT), col(ColumnType.STRING, 1000))

    @pytest.mark.parametrize(
        "old_type,new_max,expected",
        [
            (ColumnType.INTEGER, 20, True),
            (ColumnType.INTEGER, 19, False),
            (ColumnType.DOUBLE, 22, True),
            (ColumnType.DOUBLE, 21, False),
        ],
    )
    def test_numeric_to_string_uses_type_length(
        self, old_type: ColumnType, new_max: int, expected: bool
    ) -> None:
        """Numbers converted to STRING need room for their longest rendering."""
        assert is_compatible_column(col(old_type), col(ColumnType.STRING, new_max)) is expected

    def test_every_allowed_pair_is_compatible(self) -> None:
        for old_type, new_types in ALLOWED_OLD_TYPE_TO_NEW_TYPE.items():
            for new_type in new_types:
                new_max = 100 if new_type == ColumnType.STRING else None
                old_max = 100 if old_type == ColumnType.STRING else None
                assert is_compatible_column(col(old_type, old_max), col(new_type, new_max))

    def test_old_string_without_length_is_config_error(self) -> None:
        with pytest.raises(ConfigurationError, match="old column foo"):
            is_compatible_column(col(ColumnType.STRING), col(ColumnType.STRING, 100))

    def test_new_string_without_length_is_config_error(self) -> None:
        with pytest.raises(ConfigurationError, match="new column foo"):
            is_compatible_column(col(ColumnType.STRING, 100), col(ColumnType.STRING))


@pytest.mark.unit
class TestBuildSchemaChangeRequest:
    """Test build_schema_change_request."""

    def test_no_changes(self) -> None:
        old = [col(ColumnType.STRING, 36, name="recordId", id="1")]
        new = [col(ColumnType.STRING, 36, name="recordId")]

        assert build_schema_change_request("syn1", old, new) is None

    def test_added_and_widened_columns(self) -> None:
        old = [col(ColumnType.INTEGER, name="steps", id="1")]
        new = [col(ColumnType.DOUBLE, name="steps"), col(ColumnType.BOOLEAN, name="done")]

        change = build_schema_change_request("syn1", old, new)

        assert change is not None
        assert [c.name for c in change.changed_columns] == ["steps"]
        assert [c.name for c in change.added_columns] == ["done"]

    def test_removed_column_is_incompatible(self) -> None:
        old = [col(ColumnType.INTEGER, name="steps", id="1"), col(ColumnType.INTEGER, name="gone", id="2")]
        new = [col(ColumnType.INTEGER, name="steps")]

        with pytest.raises(IncompatibleSchemaError, match="gone"):
            build_schema_change_request("syn1", old, new)

    def test_incompatible_column_names_every_problem(self) -> None:
        old = [col(ColumnType.STRING, 100, name="a", id="1"), col(ColumnType.DATE, name="b", id="2")]
        new = [col(ColumnType.STRING, 10, name="a"), col(ColumnType.STRING, 100, name="b")]

        with pytest.raises(IncompatibleSchemaError) as exc_info:
            build_schema_change_request("syn1", old, new)

        assert "a (" in str(exc_info.value)
        assert "b (" in str(exc_info.value)


@pytest.mark.unit
class TestFieldMapping:
    """Test field definition to column mapping."""

    def test_default_max_length(self) -> None:
        assert get_max_length_for_field_def(FieldDefinition(name="s", type="string")) == 100

    def test_type_max_length(self) -> None:
        assert get_max_length_for_field_def(FieldDefinition(name="d", type="calendar_date")) == 10
        assert get_max_length_for_field_def(FieldDefinition(name="d", type="duration_v2")) == 24
        assert get_max_length_for_field_def(FieldDefinition(name="t", type="time_v2")) == 12

    def test_explicit_max_length_wins(self) -> None:
        assert get_max_length_for_field_def(FieldDefinition(name="d", type="calendar_date", max_length=30)) == 30

    @pytest.mark.parametrize(
        "field_type,column_type",
        [
            ("boolean", ColumnType.BOOLEAN),
            ("single_choice", ColumnType.STRING),
            ("attachment_v2", ColumnType.FILEHANDLEID),
            ("float", ColumnType.DOUBLE),
            ("int", ColumnType.INTEGER),
            ("timestamp", ColumnType.DATE),
            ("large_text_attachment", ColumnType.LARGETEXT),
        ],
    )
    def test_column_types(self, field_type: str, column_type: ColumnType) -> None:
        column = column_for_field_def(FieldDefinition(name="f", type=field_type))
        assert column.column_type == column_type

    def test_unbounded_string_becomes_largetext(self) -> None:
        column = column_for_field_def(FieldDefinition(name="f", type="string", unbounded_text=True))

        assert column.column_type == ColumnType.LARGETEXT
        assert column.transfer_method == TransferMethod.LARGETEXT
        assert column.maximum_size is None

    def test_only_string_columns_have_length(self) -> None:
        assert column_for_field_def(FieldDefinition(name="f", type="int")).maximum_size is None
        assert column_for_field_def(FieldDefinition(name="f", type="inline_json_blob")).maximum_size == 100
