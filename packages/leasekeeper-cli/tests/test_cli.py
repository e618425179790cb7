"""Tests for the leasekeeper CLI"""
import httpx
import pytest
from click.testing import CliRunner
from sqlalchemy.pool import NullPool

import leasekeeper_cli.cli as cli_module
from leasekeeper_cli import db_utils
from leasekeeper_cli.api_client import GatewayClient
from leasekeeper_cli.cli import cli
from leasekeeper_gateway.app import app, get_lease_manager
from leasekeeper_store.database import create_engine_for_url


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def gateway(monkeypatch, sync_manager):
    """Route CLI gateway calls into the app in-process"""
    app.dependency_overrides[get_lease_manager] = lambda: sync_manager
    monkeypatch.setattr(
        cli_module,
        "GatewayClient",
        lambda: GatewayClient(base_url="http://gateway.test", transport=httpx.ASGITransport(app=app))
    )
    yield sync_manager
    app.dependency_overrides.clear()


@pytest.fixture
def offline_gateway(monkeypatch):
    def handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)

    monkeypatch.setattr(
        cli_module,
        "GatewayClient",
        lambda: GatewayClient(base_url="http://gateway.test", transport=httpx.MockTransport(handler))
    )


@pytest.fixture
def db_engine(monkeypatch, sqlite_url):
    """Point the db commands at a throwaway SQLite file"""
    engine = create_engine_for_url(sqlite_url, poolclass=NullPool)
    monkeypatch.setattr(cli_module, "init_database", lambda: db_utils.init_database(engine))
    monkeypatch.setattr(cli_module, "drop_all_tables", lambda: db_utils.drop_all_tables(engine))
    monkeypatch.setattr(cli_module, "get_lock_stats", lambda: db_utils.get_lock_stats(engine))
    monkeypatch.setattr(
        cli_module,
        "purge_expired_leases",
        lambda grace_seconds: db_utils.purge_expired_leases(grace_seconds, engine)
    )
    return engine


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_acquire_and_release(runner, gateway):
    """Test acquire then release through the gateway"""
    result = runner.invoke(cli, ["locks", "acquire", "report", "worker-1"])
    assert result.exit_code == 0
    assert "✓ report acquired by worker-1" in result.output

    result = runner.invoke(cli, ["locks", "release", "report", "worker-1"])
    assert result.exit_code == 0
    assert "✓ report released" in result.output


def test_acquire_denied_exit_code(runner, gateway):
    """Test a denied acquire exits with 2"""
    runner.invoke(cli, ["locks", "acquire", "report", "worker-1"])

    result = runner.invoke(cli, ["locks", "acquire", "report", "worker-2"])
    assert result.exit_code == 2
    assert "held by another process" in result.output


def test_release_by_non_holder_exit_code(runner, gateway):
    runner.invoke(cli, ["locks", "acquire", "report", "worker-1"])

    result = runner.invoke(cli, ["locks", "release", "report", "worker-2"])
    assert result.exit_code == 2
    assert "not locked by worker-2" in result.output


def test_status(runner, gateway):
    result = runner.invoke(cli, ["locks", "status", "report"])
    assert result.exit_code == 0
    assert "report: not locked" in result.output

    runner.invoke(cli, ["locks", "acquire", "report", "worker-1"])
    result = runner.invoke(cli, ["locks", "status", "report"])
    assert result.exit_code == 0
    assert "locked by worker-1" in result.output


def test_status_json(runner, gateway):
    runner.invoke(cli, ["locks", "acquire", "report", "worker-1"])

    result = runner.invoke(cli, ["locks", "status", "report", "--json"])
    assert result.exit_code == 0
    assert '"is_locked": true' in result.output
    assert '"process_id": "worker-1"' in result.output


def test_list(runner, gateway):
    """Test listing all leases and leases of one process"""
    result = runner.invoke(cli, ["locks", "list"])
    assert result.exit_code == 0
    assert "No active leases." in result.output

    runner.invoke(cli, ["locks", "acquire", "alpha", "worker-1"])
    runner.invoke(cli, ["locks", "acquire", "beta", "worker-2"])

    result = runner.invoke(cli, ["locks", "list"])
    assert "Total active leases: 2" in result.output

    result = runner.invoke(cli, ["locks", "list", "--process", "worker-2"])
    assert "beta" in result.output
    assert "alpha" not in result.output
    assert "Total active leases: 1" in result.output


def test_wait_acquires_free_resource(runner, gateway):
    result = runner.invoke(cli, ["locks", "wait", "report", "worker-1", "--timeout", "5"])
    assert result.exit_code == 0
    assert "✓ report acquired by worker-1" in result.output


def test_wait_times_out(runner, gateway):
    """Test wait exits with 2 while another process holds the lease"""
    runner.invoke(cli, ["locks", "acquire", "report", "worker-1"])

    result = runner.invoke(cli, ["locks", "wait", "report", "worker-2", "--timeout", "0"])
    assert result.exit_code == 2
    assert "Timed out waiting for report" in result.output


def test_gateway_unreachable(runner, offline_gateway):
    """Test transport errors exit with 1"""
    result = runner.invoke(cli, ["locks", "acquire", "report", "worker-1"])
    assert result.exit_code == 1
    assert "Error acquiring lease" in result.output


def test_db_init_and_stats(runner, db_engine):
    result = runner.invoke(cli, ["db", "init"])
    assert result.exit_code == 0
    assert "✓ Database initialized successfully" in result.output

    result = runner.invoke(cli, ["db", "stats"])
    assert result.exit_code == 0
    assert "Rows:           0" in result.output
    assert "Active holders: 0" in result.output


def test_db_reset_requires_confirm(runner, db_engine):
    result = runner.invoke(cli, ["db", "reset"])
    assert result.exit_code == 0
    assert "Use --confirm" in result.output

    result = runner.invoke(cli, ["db", "reset", "--confirm"])
    assert result.exit_code == 0
    assert "✓ Database reset successfully" in result.output


def test_db_reap(runner, db_engine):
    """Test reap needs --confirm and reports the purge count"""
    runner.invoke(cli, ["db", "init"])

    result = runner.invoke(cli, ["db", "reap"])
    assert "Use --confirm" in result.output

    result = runner.invoke(cli, ["db", "reap", "--grace-seconds", "0", "--confirm"])
    assert result.exit_code == 0
    assert "✓ Purged 0 expired rows" in result.output


def test_db_reap_rejects_negative_grace(runner, db_engine):
    result = runner.invoke(cli, ["db", "reap", "--grace-seconds", "-1", "--confirm"])
    assert result.exit_code == 2


def test_db_stats_without_table(runner, db_engine):
    """Test store failures exit with 1"""
    result = runner.invoke(cli, ["db", "stats"])
    assert result.exit_code == 1
    assert "Error getting stats" in result.output


def test_config_show_masks_password(runner, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://locker:s3cret@db:5432/locks")
    result = runner.invoke(cli, ["config", "show"])
    assert result.exit_code == 0
    assert "s3cret" not in result.output
    assert "locker:***@db" in result.output


def test_config_check_valid(runner, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///locks.db")
    monkeypatch.setenv("TTL_SECONDS", "30")
    result = runner.invoke(cli, ["config", "check"])
    assert result.exit_code == 0
    assert "✓ Configuration is valid" in result.output


def test_config_check_invalid_ttl(runner, monkeypatch):
    monkeypatch.setenv("TTL_SECONDS", "soon")
    result = runner.invoke(cli, ["config", "check"])
    assert result.exit_code == 1
    assert "TTL_SECONDS" in result.output


def test_db_init_reads_dotenv(runner, monkeypatch, tmp_path):
    """Test DATABASE_URL is picked up from .env in the working directory"""
    db_file = tmp_path / "fromenv.db"
    (tmp_path / ".env").write_text(f"DATABASE_URL=sqlite+aiosqlite:///{db_file}\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", "unset")
    monkeypatch.delenv("DATABASE_URL")

    result = runner.invoke(cli, ["db", "init"])

    assert result.exit_code == 0
    assert db_file.exists()


def test_dotenv_does_not_override_environment(runner, monkeypatch, tmp_path):
    """Test exported variables win over .env values"""
    (tmp_path / ".env").write_text("GATEWAY_URL=http://from-dotenv:5000\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GATEWAY_URL", "http://from-shell:5000")

    result = runner.invoke(cli, ["config", "show"])

    assert result.exit_code == 0
    assert "http://from-shell:5000" in result.output


def test_config_show_reads_gateway_url_from_dotenv(runner, monkeypatch, tmp_path):
    (tmp_path / ".env").write_text("GATEWAY_URL=http://locks.internal:8080\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GATEWAY_URL", "unset")
    monkeypatch.delenv("GATEWAY_URL")

    result = runner.invoke(cli, ["config", "show"])

    assert result.exit_code == 0
    assert "GATEWAY_URL:  http://locks.internal:8080" in result.output
