"""
Tests for the indexer entry point
"""

import asyncio
import json
import logging
import pytest
from argparse import Namespace

from jup_indexer import main as cli
from jup_indexer.config import Settings
from jup_indexer.core.batch_processor import BatchProcessor
from jup_indexer.db import Database
from jup_indexer.exceptions import RpcException
from jup_indexer.source.rpc_parser import parse_block

from conftest import XYZ_MINT, getblock_tx


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch, tmp_path):
    """main() reconfigures the root logger and writes logs/ under cwd"""
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def blocks_dir(tmp_path):
    path = tmp_path / "blocks"
    path.mkdir()
    result = {"blockTime": 1_719_000_000, "blockHeight": 1, "transactions": [getblock_tx("sigA")]}
    (path / "250000000.json").write_text(json.dumps(result))
    (path / "250000001.json").write_text(json.dumps({"jsonrpc": "2.0", "id": 1, "result": None}))
    response = {"jsonrpc": "2.0", "id": 2, "result": dict(result, transactions=[getblock_tx("sigB")])}
    (path / "250000002.json").write_text(json.dumps(response))
    (path / "notes.txt").write_text("ignored")
    return path


class TestOfflineRun:
    """--blocks-dir replay"""

    def test_trades_saved(self, tmp_path, blocks_dir):
        db_path = str(tmp_path / "out.db")
        code = cli.main(["--blocks-dir", str(blocks_dir), "--db", db_path, "--batch-size", "1"])

        assert code == 0
        db = Database(db_path)
        trades = db.get_sol_trades()
        assert sorted(t["id"] for t in trades) == ["sigA", "sigB"]
        assert all(t["mint"] == XYZ_MINT for t in trades)
        assert db.get_last_slot() == 250_000_002
        assert (tmp_path / "logs" / "indexer.log").exists()

    def test_slot_filter(self, tmp_path, blocks_dir):
        db_path = str(tmp_path / "out.db")
        cli.main(["--blocks-dir", str(blocks_dir), "--db", db_path, "--from-slot", "250000001"])

        trades = Database(db_path).get_sol_trades()
        assert [t["id"] for t in trades] == ["sigB"]

    def test_dry_run_writes_nothing(self, tmp_path, blocks_dir):
        db_path = str(tmp_path / "out.db")
        code = cli.main(["--blocks-dir", str(blocks_dir), "--db", db_path, "--dry-run"])

        assert code == 0
        summary = Database(db_path).get_summary()
        assert summary["sol_trades"] == 0
        assert summary["last_slot"] is None

    def test_bad_log_level(self, tmp_path, capsys):
        code = cli.main(["--blocks-dir", str(tmp_path), "--log-level", "LOUD"])

        assert code == 2
        assert "Configuration error" in capsys.readouterr().err


class TestResolveStartSlot:
    def _args(self, from_slot=None):
        return Namespace(from_slot=from_slot)

    def test_explicit_slot_wins(self, tmp_path):
        db = Database(str(tmp_path / "a.db"))
        db.set_last_slot(10)
        assert cli.resolve_start_slot(self._args(3), Settings(), db) == 3

    def test_resume_after_checkpoint(self, tmp_path):
        db = Database(str(tmp_path / "a.db"))
        db.set_last_slot(10)
        assert cli.resolve_start_slot(self._args(), Settings(), db) == 11

    def test_configured_start(self, tmp_path):
        db = Database(str(tmp_path / "a.db"))
        assert cli.resolve_start_slot(self._args(), Settings(START_SLOT=77), db) == 77


class FakeSource:
    """Stands in for RpcBlockSource, serving one parsed block per slot"""

    def __init__(self, rpc_url, concurrency=20, timeout=30.0):
        self.requested = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def get_slot(self):
        return 102

    async def iter_batches(self, from_slot, to_slot, batch_size):
        self.requested.append((from_slot, to_slot, batch_size))
        for start in range(from_slot, to_slot + 1, batch_size):
            end = min(start + batch_size - 1, to_slot)
            yield [
                parse_block(slot, {"blockTime": 1_719_000_000, "transactions": [getblock_tx(f"sig{slot}")]})
                for slot in range(start, end + 1)
            ]


class TestRpcRun:
    def test_runs_to_current_slot(self, tmp_path, monkeypatch):
        monkeypatch.setattr(cli, "RpcBlockSource", FakeSource)
        db = Database(str(tmp_path / "rpc.db"))
        args = Namespace(from_slot=100, to_slot=None, dry_run=False)
        settings = Settings(RPC_URL="http://rpc", BATCH_SIZE=2)

        batches = asyncio.run(cli.run_rpc(args, settings, db, BatchProcessor()))

        assert batches == 2
        assert len(db.get_sol_trades()) == 3
        assert db.get_last_slot() == 102

    def test_stops_on_shutdown(self, tmp_path, monkeypatch):
        monkeypatch.setattr(cli, "RpcBlockSource", FakeSource)
        cli.shutdown_event.set()
        try:
            db = Database(str(tmp_path / "rpc.db"))
            args = Namespace(from_slot=100, to_slot=110, dry_run=False)
            settings = Settings(RPC_URL="http://rpc", BATCH_SIZE=2)

            batches = asyncio.run(cli.run_rpc(args, settings, db, BatchProcessor()))
        finally:
            cli.shutdown_event.clear()

        assert batches == 1
        assert db.get_last_slot() == 101


class TestBadInput:
    """Decode and transport failures stop the run with exit code 1"""

    def test_bad_balance_index(self, tmp_path):
        path = tmp_path / "bad"
        path.mkdir()
        tx = getblock_tx()
        tx["meta"]["preTokenBalances"][0]["accountIndex"] = 99
        (path / "250000000.json").write_text(json.dumps({"blockTime": 1_719_000_000, "transactions": [tx]}))

        code = cli.main(["--blocks-dir", str(path), "--db", str(tmp_path / "out.db")])

        assert code == 1
        assert Database(str(tmp_path / "out.db")).get_last_slot() is None

    def test_unreadable_block_file(self, tmp_path):
        path = tmp_path / "bad"
        path.mkdir()
        (path / "250000000.json").write_text("{not json")

        assert cli.main(["--blocks-dir", str(path), "--db", str(tmp_path / "out.db")]) == 1

    def test_rpc_failure(self, tmp_path, monkeypatch):
        class DownSource(FakeSource):
            async def get_slot(self):
                raise RpcException("getSlot request failed")

        monkeypatch.setattr(cli, "RpcBlockSource", DownSource)
        monkeypatch.setattr(cli.Settings, "from_env", classmethod(lambda cls: cls(RPC_URL="http://rpc")))

        assert cli.main(["--db", str(tmp_path / "out.db")]) == 1
