"""Tests for CLI command exit behaviour."""

import pytest

from indexsync.cli.commands import backfill as backfill_cmd
from indexsync.cli.commands import bootstrap as bootstrap_cmd
from indexsync.cli.commands import status as status_cmd
from indexsync.config import Config
from indexsync.domain.indexing.service.backfill import BackfillResult
from indexsync.domain.shared.error import SearchEngineError
from indexsync.infrastructure.search.bootstrap import BootstrapResult


@pytest.fixture(autouse=True)
def quiet_config(monkeypatch):
    config = Config(queue={"backend": "memory"}, subscriber={"enabled": False})
    monkeypatch.setattr(backfill_cmd, "load_config", lambda: config)
    monkeypatch.setattr(bootstrap_cmd, "load_config", lambda: config)
    monkeypatch.setattr(status_cmd, "load_config", lambda: config)
    return config


def returning(value):
    async def _fake(config):
        return value

    return _fake


def raising(error):
    async def _fake(config):
        raise error

    return _fake


class TestBackfillCommand:
    def test_clean_run_exits_normally(self, monkeypatch, capsys):
        result = BackfillResult(total=3, indexed=3, failed=0, batches=1)
        monkeypatch.setattr(backfill_cmd, "run_direct", returning(result))

        backfill_cmd.backfill()

        assert "Backfill complete" in capsys.readouterr().out

    def test_failures_exit_with_status_1(self, monkeypatch):
        result = BackfillResult(total=3, indexed=2, failed=1, batches=1)
        monkeypatch.setattr(backfill_cmd, "run_direct", returning(result))

        with pytest.raises(SystemExit) as exc_info:
            backfill_cmd.backfill()

        assert exc_info.value.code == 1

    def test_via_queue_reports_enqueued_count(self, monkeypatch, capsys):
        monkeypatch.setattr(backfill_cmd, "run_via_queue", returning(7))

        backfill_cmd.backfill(via_queue=True)

        assert "Enqueued 7 review jobs" in capsys.readouterr().out

    def test_search_engine_error_exits_with_status_1(self, monkeypatch):
        monkeypatch.setattr(backfill_cmd, "run_direct", raising(SearchEngineError("down")))

        with pytest.raises(SystemExit) as exc_info:
            backfill_cmd.backfill()

        assert exc_info.value.code == 1


class TestBootstrapCommand:
    def test_reports_each_alias(self, monkeypatch, capsys):
        monkeypatch.setattr(
            bootstrap_cmd,
            "run_bootstrap",
            returning(
                [
                    BootstrapResult("reviews", "reviews-template-v1", "reviews-v1"),
                    BootstrapResult("review-activities", "review-activities-template-v1"),
                ]
            ),
        )

        bootstrap_cmd.bootstrap()

        out = capsys.readouterr().out
        assert "reviews -> reviews-v1 (created)" in out
        assert "review-activities already provisioned" in out

    def test_failure_exits_with_status_1(self, monkeypatch):
        monkeypatch.setattr(
            bootstrap_cmd, "run_bootstrap", raising(SearchEngineError("forbidden", status_code=403))
        )

        with pytest.raises(SystemExit) as exc_info:
            bootstrap_cmd.bootstrap()

        assert exc_info.value.code == 1


class TestStatusCommand:
    def test_green_cluster_reports_queue_depth(self, monkeypatch, capsys):
        report = status_cmd.StatusReport(
            cluster={"cluster_name": "search", "status": "green"}, pending_jobs=1234
        )
        monkeypatch.setattr(status_cmd, "collect_status", returning(report))

        status_cmd.status()

        out = capsys.readouterr().out
        assert "search" in out
        assert "green" in out
        assert "1,234" in out

    def test_red_cluster_exits_with_status_1(self, monkeypatch):
        report = status_cmd.StatusReport(cluster={"status": "red"}, pending_jobs=0)
        monkeypatch.setattr(status_cmd, "collect_status", returning(report))

        with pytest.raises(SystemExit) as exc_info:
            status_cmd.status()

        assert exc_info.value.code == 1

    def test_unreachable_cluster_exits_with_status_1(self, monkeypatch):
        monkeypatch.setattr(status_cmd, "collect_status", raising(SearchEngineError("refused")))

        with pytest.raises(SystemExit) as exc_info:
            status_cmd.status()

        assert exc_info.value.code == 1
