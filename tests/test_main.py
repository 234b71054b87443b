"""
Tests for the command-line entry point.

Tests:
- Argument parsing for each command
- import-players and export against a temporary checkpoint
- import-players refuses a checkpoint owned by a running server
"""

import pytest
from fastapi.testclient import TestClient

from house_auction import config
from house_auction.auction.api_server import create_app
from house_auction.auction.entity_store import PLAYERS, EntityStore
from house_auction.auction.sale_log import SaleLog
from house_auction.main import main, parse_arguments


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'CHECKPOINT_FILE', str(tmp_path / "state.json"))
    monkeypatch.setattr(config, 'SALE_LOG_FILE', str(tmp_path / "sales.jsonl"))
    return tmp_path


class TestParseArguments:
    """Test CLI parsing"""

    def test_import_flags(self):
        args = parse_arguments(["import-players", "players.xlsx", "--dry-run"])

        assert args.command == "import-players"
        assert args.file == "players.xlsx"
        assert args.dry_run is True
        assert args.allow_duplicates is False

    def test_serve_defaults(self):
        args = parse_arguments(["--verbose", "serve"])

        assert args.verbose is True
        assert args.port == config.API_PORT

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_arguments([])


class TestCommands:
    """Test import and export against a checkpoint file"""

    def test_import_then_export(self, data_dir):
        sheet = data_dir / "players.csv"
        sheet.write_text(
            "Name,Batch,House,Select your playing strength\n"
            "Arjun Mehta,12,Aravali,Batsman\n",
            encoding='utf-8'
        )

        main(["import-players", str(sheet)])

        store = EntityStore.load_checkpoint(data_dir / "state.json")
        assert store.count(PLAYERS) == 1

        main(["export", "--output-dir", str(data_dir / "out")])

        assert any(p.name.startswith("teams_") for p in (data_dir / "out").iterdir())

    def test_dry_run_leaves_checkpoint_alone(self, data_dir):
        sheet = data_dir / "players.csv"
        sheet.write_text(
            "Name,Batch,House,Select your playing strength\n"
            "Arjun Mehta,12,Aravali,Batsman\n",
            encoding='utf-8'
        )

        main(["import-players", str(sheet), "--dry-run"])

        assert not (data_dir / "state.json").exists()

    def test_import_errors_exit_nonzero(self, data_dir):
        sheet = data_dir / "players.csv"
        sheet.write_text(
            "Name,Batch,House,Select your playing strength\n"
            "Arjun Mehta,99,Aravali,Batsman\n",
            encoding='utf-8'
        )

        with pytest.raises(SystemExit) as exc_info:
            main(["import-players", str(sheet)])

        assert exc_info.value.code == 1

    def test_import_refused_while_server_runs(self, data_dir):
        """Verify the CLI cannot write a checkpoint the server will overwrite"""
        sheet = data_dir / "players.csv"
        sheet.write_text(
            "Name,Batch,House,Select your playing strength\n"
            "Arjun Mehta,12,Aravali,Batsman\n",
            encoding='utf-8'
        )
        app = create_app(
            store=EntityStore.load_checkpoint(data_dir / "state.json"),
            sale_log=SaleLog(data_dir / "sales.jsonl"),
            admin_token="secret"
        )

        with TestClient(app) as client:
            with pytest.raises(SystemExit) as exc_info:
                main(["import-players", str(sheet)])
            client.put(
                "/api/admin/settings",
                json={"minIncrement": 1000},
                headers={"X-Admin-Token": "secret"}
            )

        assert exc_info.value.code == 1
        assert not (data_dir / "state.lock").exists()
        assert EntityStore.load_checkpoint(data_dir / "state.json").count(PLAYERS) == 0

        main(["import-players", str(sheet)])

        assert EntityStore.load_checkpoint(data_dir / "state.json").count(PLAYERS) == 1
