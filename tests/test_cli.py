"""
CLI tests for cfstack commands.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

import config
from cli.__main__ import cli
from cloudformation.errors import DeploymentError

MANIFEST = {
    "Regions": [
        {"Name": "us-east-1", "Stacks": [{"StackName": "app", "TemplatePath": "app.yaml"}]},
    ]
}


class TestCli:
    """Test command wiring with a stubbed orchestrator."""

    @pytest.fixture(autouse=True)
    def no_home_config(self, tmp_path):
        with patch.object(config, "DEFAULT_CONFIG_FILE", tmp_path / "absent.yaml"):
            yield
        config.set_settings(None)

    @pytest.fixture
    def runner(self):
        return CliRunner()

    @pytest.fixture
    def manifest_file(self, tmp_path):
        path = tmp_path / "manifest.json"
        path.write_text(json.dumps(MANIFEST))
        (tmp_path / "values.json").write_text(json.dumps({"us-east-1": {"app": {"Env": "prod"}}}))
        return path

    def test_help(self, runner) -> None:
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("init", "deploy", "diff", "delete"):
            assert command in result.output

    def test_deploy(self, runner, manifest_file) -> None:
        """Test that deploy runs the whole manifest with values next to it."""
        with patch("cli.deploy.Orchestrator") as mock_orchestrator:
            result = runner.invoke(cli, ["deploy", "-m", str(manifest_file), "--profile", "prod", "-w", "4"])

        assert result.exit_code == 0, result.output
        assert "Deploy stacks command completed" in result.output
        args, kwargs = mock_orchestrator.call_args
        assert args[0].region_names == ("us-east-1",)
        assert kwargs["values"].lookup("us-east-1", "app", "Env") == "prod"
        assert kwargs["profile"] == "prod"
        assert kwargs["workers"] == 4
        mock_orchestrator.return_value.deploy.assert_called_once_with()

    def test_deploy_failure(self, runner, manifest_file) -> None:
        with patch("cli.deploy.Orchestrator") as mock_orchestrator:
            mock_orchestrator.return_value.deploy.side_effect = DeploymentError(["us-east-1"])
            result = runner.invoke(cli, ["deploy", "-m", str(manifest_file)])

        assert result.exit_code == 1
        assert "Error: Deployment failed in region(s): us-east-1" in result.output
        assert "Deploy command has failed" in result.output

    def test_deploy_stack(self, runner, manifest_file) -> None:
        with patch("cli.deploy.Orchestrator") as mock_orchestrator:
            result = runner.invoke(
                cli, ["deploy", "-m", str(manifest_file), "stack", "-n", "app", "-r", "us-east-1"]
            )

        assert result.exit_code == 0, result.output
        mock_orchestrator.return_value.deploy_stack.assert_called_once_with("app", "us-east-1")
        mock_orchestrator.return_value.deploy.assert_not_called()

    def test_invalid_manifest(self, runner, tmp_path) -> None:
        path = tmp_path / "manifest.json"
        path.write_text(json.dumps({"Regions": []}))

        result = runner.invoke(cli, ["deploy", "-m", str(path)])

        assert result.exit_code == 1
        assert "No Regions found" in result.output

    def test_missing_manifest(self, runner, tmp_path) -> None:
        result = runner.invoke(cli, ["deploy", "-m", str(tmp_path / "missing.json")])

        assert result.exit_code == 2

    def test_diff(self, runner, manifest_file, tmp_path) -> None:
        output = tmp_path / "out.json"
        with patch("cli.diff.Orchestrator") as mock_orchestrator:
            mock_orchestrator.return_value.diff.return_value = output
            result = runner.invoke(cli, ["diff", "-m", str(manifest_file), "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert f"Diff written to {output}" in result.output
        mock_orchestrator.return_value.diff.assert_called_once_with(str(output))

    def test_delete(self, runner, manifest_file) -> None:
        with patch("cli.delete.Orchestrator") as mock_orchestrator:
            result = runner.invoke(cli, ["delete", "-m", str(manifest_file), "--role", "arn:aws:iam::1:role/cfn"])

        assert result.exit_code == 0, result.output
        assert mock_orchestrator.call_args.kwargs["role_arn"] == "arn:aws:iam::1:role/cfn"
        mock_orchestrator.return_value.delete.assert_called_once_with()

    def test_delete_stack(self, runner, manifest_file) -> None:
        with patch("cli.delete.Orchestrator") as mock_orchestrator:
            result = runner.invoke(cli, ["delete", "-m", str(manifest_file), "stack", "-n", "app", "-r", "us-east-1"])

        assert result.exit_code == 0, result.output
        mock_orchestrator.return_value.delete_stack.assert_called_once_with("app", "us-east-1")

    def test_init(self, runner) -> None:
        with patch("cli.init.init_region") as mock_init:
            result = runner.invoke(cli, ["init", "-r", "eu-west-1", "--profile", "prod"])

        assert result.exit_code == 0, result.output
        assert "Initialization complete in eu-west-1" in result.output
        assert mock_init.call_args.args == ("eu-west-1",)
        assert mock_init.call_args.kwargs["profile"] == "prod"

    def test_missing_config_file(self, runner, tmp_path) -> None:
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.yaml"), "init", "-r", "us-east-1"])

        assert result.exit_code == 1
        assert "Config file not found" in result.output
