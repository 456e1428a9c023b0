"""Tests for ExportManager."""

from typing import Any, Dict
from unittest.mock import Mock

import pytest

from bridgex.exceptions import ConfigurationError, SynapseClientError
from bridgex.objects.app_config import AppConfig
from bridgex.objects.export_config import ExportConfig, FieldDefinition, StudyConfig
from bridgex.synapse.synapse_helper import SynapseHelper
from bridgex.worker.export_manager import ExportManager
from bridgex.worker.table_spec import AppVersionTableSpec, HealthDataTableSpec
from tests.conftest import InMemoryTableRegistry


@pytest.fixture
def manager(
    helper: SynapseHelper,
    registry: InMemoryTableRegistry,
    app_config: AppConfig,
    export_config: ExportConfig,
) -> ExportManager:
    return ExportManager(helper, registry, app_config, export_config)


@pytest.mark.unit
class TestBuildTableSpecs:
    """Test ExportManager.build_table_specs."""

    def test_health_and_app_version_tables(self, manager: ExportManager) -> None:
        specs = manager.build_table_specs()

        assert [s.table_key for s in specs] == ["test-study-walking-v1", "test-study-appVersion"]
        assert isinstance(specs[0], HealthDataTableSpec)
        assert isinstance(specs[1], AppVersionTableSpec)

    def test_disabled_study_has_no_tables(
        self, helper: SynapseHelper, registry: InMemoryTableRegistry, app_config: AppConfig, export_config: ExportConfig
    ) -> None:
        export_config.study["test-study"] = StudyConfig(project_id="syn500", data_access_team_id=1234, disable_export=True)

        assert ExportManager(helper, registry, app_config, export_config).build_table_specs() == []

    def test_field_shadowing_common_column(self, export_config: ExportConfig, manager: ExportManager) -> None:
        """A schema field named like a common column is a configuration error."""
        table_def = next(iter(export_config.table.values()))
        table_def.field.append(FieldDefinition(name="healthCode", type="string", max_length=36))

        with pytest.raises(ConfigurationError, match="healthCode"):
            manager.build_table_specs()

    def test_access_policy(self, manager: ExportManager) -> None:
        policy = manager.access_policy_for("test-study")

        assert policy.parent_id == "syn500"
        assert policy.admin_principal_ids == [3336429, 3337267]
        assert policy.read_principal_ids == [1234, 3345000]


@pytest.mark.unit
class TestRun:
    """Test ExportManager.run."""

    def test_exports_record_to_both_tables(
        self,
        manager: ExportManager,
        mock_store: Mock,
        registry: InMemoryTableRegistry,
        sample_record: Dict[str, Any],
    ) -> None:
        mock_store.create_table.side_effect = ["syn1000", "syn2000"]
        mock_store.get_csv_import_result.return_value = 1

        summary = manager.run([sample_record])

        assert not summary.has_failures
        assert summary.skipped_records == 0
        assert registry.entries == {"test-study-walking-v1": "syn1000", "test-study-appVersion": "syn2000"}
        assert [(r.table_key, r.table_id, r.line_count, r.uploaded) for r in summary.results] == [
            ("test-study-appVersion", "syn2000", 1, True),
            ("test-study-walking-v1", "syn1000", 1, True),
        ]
        app_version_result = summary.results[0]
        assert app_version_result.extra_metrics == {"uniqueAppVersions[test-study]": ["version 1.0, build 7"]}

    def test_unknown_study_is_skipped(
        self, manager: ExportManager, mock_store: Mock, sample_record: Dict[str, Any]
    ) -> None:
        """A record with no destination is counted and nothing is uploaded."""
        sample_record["studyId"] = "other-study"

        summary = manager.run([sample_record])

        assert summary.skipped_records == 1
        assert summary.total_lines == 0
        mock_store.upload_file.assert_not_called()

    def test_invalid_revision_is_skipped(self, manager: ExportManager, sample_record: Dict[str, Any]) -> None:
        sample_record["schemaRevision"] = "two"

        assert manager.run([sample_record]).skipped_records == 1

    def test_unknown_schema_still_records_app_version(
        self, manager: ExportManager, mock_store: Mock, sample_record: Dict[str, Any]
    ) -> None:
        sample_record["schemaId"] = "tapping"
        mock_store.get_csv_import_result.return_value = 1

        summary = manager.run([sample_record])

        lines = {r.table_key: r.line_count for r in summary.results}
        assert lines == {"test-study-appVersion": 1, "test-study-walking-v1": 0}

    def test_provisioning_failure_only_fails_that_table(
        self, manager: ExportManager, mock_store: Mock, sample_record: Dict[str, Any]
    ) -> None:
        mock_store.create_table.side_effect = [SynapseClientError("forbidden", 403), "syn2000"]
        mock_store.get_csv_import_result.return_value = 1

        summary = manager.run([sample_record])

        assert summary.has_failures
        assert list(summary.provisioning_failures) == ["test-study-walking-v1"]
        assert [(r.table_key, r.uploaded) for r in summary.results] == [("test-study-appVersion", True)]

    def test_configuration_error_stops_run(self, manager: ExportManager, mock_store: Mock) -> None:
        mock_store.create_column_models.side_effect = ConfigurationError("bad column")

        with pytest.raises(ConfigurationError):
            manager.run([])

    def test_upload_failure_is_reported(
        self, manager: ExportManager, mock_store: Mock, sample_record: Dict[str, Any]
    ) -> None:
        mock_store.get_csv_import_result.return_value = 0

        summary = manager.run([sample_record])

        assert summary.has_failures
        assert all(r.failed for r in summary.results)
        assert all(r.scratch_file for r in summary.results)

    def test_update_schemas_migrates_existing_tables(
        self,
        helper: SynapseHelper,
        mock_store: Mock,
        app_config: AppConfig,
        export_config: ExportConfig,
    ) -> None:
        registry = InMemoryTableRegistry({"test-study-walking-v1": "syn1", "test-study-appVersion": "syn2"})
        mock_store.get_column_models_for_table.return_value = []
        manager = ExportManager(helper, registry, app_config, export_config, update_schemas=True)

        manager.run([])

        called_tables = [c[0][0] for c in mock_store.get_column_models_for_table.call_args_list]
        assert called_tables == ["syn1", "syn2"]
        mock_store.create_table.assert_not_called()
