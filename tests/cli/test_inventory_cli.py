"""
Operator CLI tests.

Drives scripts/inventory_cli.py main() against a temporary SQLite database
configured through a YAML file.
"""

import json
from uuid import uuid4

import pytest
import yaml

from scripts.inventory_cli import EXIT_OK, EXIT_REJECTED, EXIT_USAGE, main


@pytest.fixture
def cli(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("INVENTORY_DATABASE_URL", raising=False)
    config_path = tmp_path / "cli.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "config_id": "cli-test",
                "database": {"url": f"sqlite:///{tmp_path / 'cli.db'}"},
                "retry": {"max_attempts": 2, "base_delay_ms": 1, "max_delay_ms": 2},
            }
        )
    )

    def _run(*argv: str) -> tuple[int, dict]:
        code = main(["--config", str(config_path), *argv])
        out = capsys.readouterr().out
        return code, (json.loads(out) if out.strip() else {})

    code, _ = _run("init-db")
    assert code == EXIT_OK
    return _run


class TestInventoryCli:

    def test_receive_ship_and_query(self, cli):
        product, warehouse, actor = str(uuid4()), str(uuid4()), str(uuid4())

        code, result = cli(
            "submit", "--type", "IN", "--product", product, "--to-warehouse", warehouse,
            "--quantity", "10", "--actor", actor, "--token", "po-1",
        )
        assert code == EXIT_OK
        assert result["status"] == "COMMITTED"

        code, result = cli(
            "submit", "--type", "OUT", "--product", product, "--from-warehouse", warehouse,
            "--quantity", "11", "--actor", actor,
        )
        assert code == EXIT_REJECTED
        assert result["status"] == "INSUFFICIENT_STOCK"
        assert result["detail"]["available"] == 10

        code, result = cli("availability", "--warehouse", warehouse, "--product", product)
        assert code == EXIT_OK
        assert result["available"] == 10

        code, result = cli("history", "--product", product)
        assert code == EXIT_OK
        assert [m["idempotency_token"] for m in result["items"]] == ["po-1"]
        assert result["next_cursor"] is None

        code, result = cli("summary", "--warehouse", warehouse)
        assert (code, result["total_quantity"]) == (EXIT_OK, 10)

        code, result = cli("reconcile")
        assert code == EXIT_OK
        assert result["consistent"] is True

    def test_validation_failure_exit_code(self, cli):
        code, result = cli(
            "submit", "--type", "ADJUSTMENT", "--product", str(uuid4()),
            "--to-warehouse", str(uuid4()), "--quantity", "-1", "--actor", str(uuid4()),
        )
        assert code == EXIT_REJECTED
        assert result["error_code"] == "VALIDATION_ERROR"

    def test_bad_cursor_is_usage_error(self, cli):
        code, _ = cli("history", "--product", str(uuid4()), "--cursor", "@@@")
        assert code == EXIT_USAGE

    def test_argparse_errors_exit_with_usage_code(self, cli):
        with pytest.raises(SystemExit) as exc_info:
            cli("availability", "--warehouse", "not-a-uuid", "--product", str(uuid4()))
        assert exc_info.value.code == EXIT_USAGE

    def test_missing_config_file(self, tmp_path, capsys):
        code = main(["--config", str(tmp_path / "absent.yaml"), "init-db"])
        assert code == EXIT_USAGE
        assert "not found" in capsys.readouterr().err

    def test_summary_reports_low_stock_from_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.delenv("INVENTORY_DATABASE_URL", raising=False)
        product, warehouse = str(uuid4()), str(uuid4())
        config_path = tmp_path / "low.yaml"
        config_path.write_text(
            yaml.safe_dump(
                {
                    "config_id": "cli-low-stock",
                    "database": {"url": f"sqlite:///{tmp_path / 'low.db'}"},
                    "catalog": {"min_stock": {product: 5}},
                }
            )
        )
        base = ["--config", str(config_path)]

        assert main([*base, "init-db"]) == EXIT_OK
        assert main([
            *base, "submit", "--type", "IN", "--product", product,
            "--to-warehouse", warehouse, "--quantity", "2", "--actor", str(uuid4()),
        ]) == EXIT_OK
        capsys.readouterr()

        assert main([*base, "summary", "--warehouse", warehouse]) == EXIT_OK
        result = json.loads(capsys.readouterr().out)
        assert (result["total_quantity"], result["low_stock_count"]) == (2, 1)
