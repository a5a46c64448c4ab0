"""
Unit tests for the command-line interface.
"""

import pytest
from click.testing import CliRunner

from clinic_coverage.cli import main


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def invoke(runner, config_file):
    """Invoke the CLI with the test configuration file."""

    def run(*args, **kwargs):
        return runner.invoke(main, ["--config", str(config_file), *args], **kwargs)

    return run


class TestCalculateCommand:
    """Tests for `calculate` against the JSON reference data."""

    def test_prints_result_as_json(self, invoke):
        result = invoke("calculate", "-p", "1", "-s", "1", "-a", "1000000", "--as-of", "2025-01-01")

        assert result.exit_code == 0, result.output
        assert '"patient_share": "220000"' in result.output
        assert '"total_coverage": "780000"' in result.output
        assert '"calculation_ids": []' in result.output

    def test_unknown_patient_exits_with_failure(self, invoke):
        result = invoke("calculate", "-p", "404", "-s", "1", "-a", "1000", "--as-of", "2025-01-01")

        assert result.exit_code == 1
        assert '"code": "unknown_patient"' in result.output

    def test_configuration_failure_exits_with_failure(self, invoke):
        """Patient 3 has two policies at priority 1."""
        result = invoke("calculate", "-p", "3", "-s", "1", "-a", "1000", "--as-of", "2025-01-01")

        assert result.exit_code == 1
        assert '"kind": "configuration"' in result.output
        assert '"code": "duplicate_priority"' in result.output

    def test_invalid_amount(self, invoke):
        result = invoke("calculate", "-p", "1", "-s", "1", "-a", "lots")

        assert result.exit_code == 1

    def test_records_and_shows_history(self, invoke):
        assert invoke("init-db").exit_code == 0

        calculated = invoke(
            "calculate", "-p", "1", "-s", "1", "-a", "1000000",
            "--as-of", "2025-01-01", "--record", "--user", "desk-3", "--service-id", "12",
        )
        history = invoke("history", "-p", "1")

        assert calculated.exit_code == 0, calculated.output
        assert '"calculation_ids": [\n    1\n  ]' in calculated.output
        assert history.exit_code == 0, history.output
        assert '"calculated_by": "desk-3"' in history.output
        assert '"service_id": 12' in history.output


class TestOtherCommands:
    def test_check_coverage(self, invoke):
        result = invoke("check-coverage", "-p", "1", "-s", "3", "--as-of", "2025-01-01")

        assert result.exit_code == 0, result.output
        assert '"covered": true' in result.output

    def test_check_coverage_self_pay_patient(self, invoke):
        result = invoke("check-coverage", "-p", "2", "-s", "1")

        assert result.exit_code == 0, result.output
        assert '"covered": false' in result.output

    def test_init_db_drop_requires_confirmation(self, invoke):
        result = invoke("init-db", "--drop-existing", input="n\n")

        assert result.exit_code == 0
        assert "Aborted." in result.output

    def test_init_db_with_reference_tables(self, invoke):
        result = invoke("init-db", "--include-reference")

        assert result.exit_code == 0, result.output
        assert "patient_insurance" in result.output

    def test_validate_config(self, invoke):
        result = invoke("validate-config")

        assert result.exit_code == 0, result.output
        assert "Configuration is valid." in result.output

    def test_validate_config_rejects_bad_unit(self, runner, tmp_path):
        path = tmp_path / "coverage.yaml"
        path.write_text("calculation:\n  currency_unit: 0.05\n")

        result = runner.invoke(main, ["--config", str(path), "validate-config"])

        assert result.exit_code == 1

    def test_validate_config_checks_database(self, invoke):
        result = invoke("validate-config", "--check-db")

        assert result.exit_code == 0, result.output
        assert "Database connection OK." in result.output

    def test_validate_config_rejects_unit_that_is_not_a_power_of_ten(self, runner, tmp_path):
        path = tmp_path / "coverage.yaml"
        path.write_text("calculation:\n  currency_unit: 5\n")

        result = runner.invoke(main, ["--config", str(path), "validate-config"])

        assert result.exit_code == 1


class TestReportingCommands:
    @pytest.fixture
    def recorded(self, invoke):
        assert invoke("init-db").exit_code == 0
        for patient_id, category_id in [("1", "1"), ("1", "2"), ("2", "1")]:
            result = invoke(
                "calculate", "-p", patient_id, "-s", category_id, "-a", "1000000",
                "--as-of", "2025-01-01", "--record", "--appointment-id", "5",
            )
            assert result.exit_code == 0, result.output

    def test_search_by_patient(self, invoke, recorded):
        result = invoke("search", "-p", "1")

        assert result.exit_code == 0, result.output
        assert '"total_count": 2' in result.output
        assert '"appointment_id": 5' in result.output

    def test_search_date_range_without_matches(self, invoke, recorded):
        result = invoke("search", "--from", "2025-02-01")

        assert result.exit_code == 0, result.output
        assert '"total_count": 0' in result.output

    def test_stats(self, invoke, recorded):
        result = invoke("stats")

        assert result.exit_code == 0, result.output
        assert '"total_calculations": 3' in result.output
        assert '"current_calculations": 3' in result.output
        assert '"total_patient_share": "1220000' in result.output
