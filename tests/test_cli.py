"""Tests for the lbsyncctl command line (cli.py)."""

import json
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from lbsync.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def use_registry(registry):
    """Route every CLI command to the shared dummy appliance."""
    with patch("lbsync.cli.default_registry", return_value=registry):
        yield registry


@pytest.fixture
def document_file(tmp_path, sample_document):
    path = tmp_path / "lb.yaml"
    path.write_text(yaml.safe_dump(sample_document))
    return path


class TestProvidersCommand:
    """Tests for `lbsyncctl providers`."""

    def test_lists_builtin_providers(self, runner):
        result = runner.invoke(cli, ["providers"])

        assert result.exit_code == 0
        for name in ("dummy", "f5_bigip", "netscaler", "haproxy"):
            assert name in result.output
        assert "TRANSACTIONAL" in result.output

    def test_respects_enabled_providers(self, runner, monkeypatch):
        monkeypatch.setenv("LBSYNC_ENABLED_PROVIDERS", "HAProxy")

        result = runner.invoke(cli, ["providers"])

        assert result.exit_code == 0
        assert "haproxy" in result.output
        assert "f5_bigip" not in result.output


class TestValidateCommand:
    """Tests for `lbsyncctl validate`."""

    def test_valid_yaml(self, runner, document_file):
        result = runner.invoke(cli, ["validate", str(document_file)])

        assert result.exit_code == 0
        assert f"{document_file} is valid" in result.output

    def test_valid_json(self, runner, tmp_path, sample_document):
        path = tmp_path / "lb.json"
        path.write_text(json.dumps(sample_document))

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == 0

    def test_invalid_document(self, runner, tmp_path, sample_document):
        sample_document["vip"] = "1"
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump(sample_document))

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Error: vip:" in result.output

    def test_document_is_not_a_status(self, runner, document_file):
        result = runner.invoke(cli, ["validate", "--status", str(document_file)])

        assert result.exit_code == 1
        assert "Error:" in result.output


class TestApplyCommand:
    """Tests for `lbsyncctl apply` and `lbsyncctl cleanup`."""

    def test_apply_writes_status(self, runner, use_registry, dummy, document_file, tmp_path):
        status_path = tmp_path / "status.yaml"

        result = runner.invoke(
            cli, ["apply", str(document_file), "--status-out", str(status_path)]
        )

        assert result.exit_code == 0, result.output
        assert f"Load balancer x applied, status written to {status_path}" in result.output
        assert "VIP-x-443" in result.output

        status = yaml.safe_load(status_path.read_text())
        assert [v["name"] for v in status["vips"]] == ["VIP-x-80", "VIP-x-443"]
        assert status["provider"]["vendor"] == "Dummy"
        assert set(dummy.vips) == {"VIP-x-80", "VIP-x-443"}

    def test_apply_prints_status(self, runner, use_registry, document_file):
        result = runner.invoke(cli, ["apply", str(document_file)])

        assert result.exit_code == 0, result.output
        assert "Pool-x-80" in result.output
        assert "monitor_type: http" in result.output

    def test_apply_then_cleanup(self, runner, use_registry, dummy, document_file, tmp_path):
        status_path = tmp_path / "status.yaml"
        runner.invoke(cli, ["apply", str(document_file), "-s", str(status_path)])

        result = runner.invoke(cli, ["cleanup", str(status_path)])

        assert result.exit_code == 0, result.output
        assert "Cleanup finished" in result.output
        assert dummy.vips == {}
        assert dummy.pools == {}
        assert dummy.monitors == {}

    def test_credentials_from_env(self, runner, use_registry, dummy, document_file):
        result = runner.invoke(
            cli,
            ["apply", str(document_file)],
            env={"LBSYNC_USERNAME": "ops", "LBSYNC_PASSWORD": "hunter2"},
        )

        assert result.exit_code == 0, result.output
        assert dummy.username == "ops"
        assert dummy.password == "hunter2"

    def test_unknown_vendor(self, runner, use_registry, tmp_path, sample_document):
        sample_document["provider"]["vendor"] = "Nope"
        path = tmp_path / "lb.yaml"
        path.write_text(yaml.safe_dump(sample_document))

        result = runner.invoke(cli, ["apply", str(path)])

        assert result.exit_code == 1
        assert "Error: no such provider: nope" in result.output

    def test_provider_failure(self, runner, use_registry, dummy, document_file):
        dummy.fail_on.add("create_pool")

        result = runner.invoke(cli, ["apply", str(document_file)])

        assert result.exit_code == 1
        assert "Error: error in create_pool Pool-x-80" in result.output
