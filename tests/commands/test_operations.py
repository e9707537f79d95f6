"""Tests for the operations command."""

from __future__ import annotations

import json

from click.testing import CliRunner

from wafctl.commands._context import AppContext
from wafctl.commands.operations import operations
from wafctl.config.settings import WafSettings


class TestOperations:
    def test_table(self, cli_runner: CliRunner, settings: WafSettings) -> None:
        result = cli_runner.invoke(operations, [], obj=AppContext(settings))
        assert result.exit_code == 0
        assert "OK  operations" in result.stdout
        assert "create_custom_rule" in result.stdout
        assert "destructive" in result.stdout

    def test_json(self, cli_runner: CliRunner, settings: WafSettings) -> None:
        app = AppContext(settings.model_copy(update={"json_output": True}))
        result = cli_runner.invoke(operations, [], obj=app)
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["data"]["count"] == 16
        by_name = {op["name"]: op for op in payload["data"]["operations"]}
        assert by_name["delete_custom_rule"]["side_effect"] == "destructive"
        assert by_name["list_zones"]["side_effect"] == "read"
