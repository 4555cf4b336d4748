"""
Tests for the subprocess and psycopg client adapters
"""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import psycopg
import pytest

from extdeploy.database.client import PostgresCommands, PsycopgQueryClient, SubprocessRunner
from extdeploy.database.introspection import (
    QueryExtensionInspector,
    extension_path,
    inspect_installed_extensions,
)
from extdeploy.domain.errors import ProcessExecutionError, QueryExecutionError
from tests.utils import FakeQueryClient


class TestSubprocessRunner:
    def test_returns_captured_output(self, monkeypatch):
        captured = {}

        def fake_run(command, **kwargs):
            captured["command"] = command
            captured.update(kwargs)
            return SimpleNamespace(returncode=0, stdout="NOTICE: ok", stderr="")

        monkeypatch.setattr("extdeploy.database.client.subprocess.run", fake_run)

        result = SubprocessRunner().run(["psql", "-f", Path("x.sql")], env={"PGPASSWORD": "pw"})

        assert result.stdout == "NOTICE: ok"
        assert captured["command"] == ["psql", "-f", "x.sql"]
        assert captured["check"] is False
        assert captured["capture_output"] is True
        assert captured["env"]["PGPASSWORD"] == "pw"

    def test_no_env_inherits_parent_environment(self, monkeypatch):
        captured = {}

        def fake_run(command, **kwargs):
            captured.update(kwargs)
            return SimpleNamespace(returncode=0, stdout="", stderr="")

        monkeypatch.setattr("extdeploy.database.client.subprocess.run", fake_run)

        SubprocessRunner().run(["psql"])

        assert captured["env"] is None

    def test_non_zero_exit_raises_with_output(self, monkeypatch):
        monkeypatch.setattr(
            "extdeploy.database.client.subprocess.run",
            lambda command, **kwargs: SimpleNamespace(returncode=3, stdout="out", stderr="ERROR: x"),
        )

        with pytest.raises(ProcessExecutionError) as exc_info:
            SubprocessRunner().run(["psql"])

        err = exc_info.value
        assert err.returncode == 3
        assert err.stdout == "out"
        assert err.stderr == "ERROR: x"
        assert "exited with status 3" in str(err)

    def test_start_failure_raises(self, monkeypatch):
        def fake_run(command, **kwargs):
            raise FileNotFoundError("psql")

        monkeypatch.setattr("extdeploy.database.client.subprocess.run", fake_run)

        with pytest.raises(ProcessExecutionError, match="Cannot run psql"):
            SubprocessRunner().run(["psql"])

    def test_oversized_output_raises(self, monkeypatch):
        monkeypatch.setattr(
            "extdeploy.database.client.subprocess.run",
            lambda command, **kwargs: SimpleNamespace(returncode=0, stdout="x" * 20, stderr=""),
        )

        with pytest.raises(ProcessExecutionError, match="byte limit"):
            SubprocessRunner(max_output_bytes=10).run(["psql"])

    def test_missing_binary_raises(self):
        """A binary absent from PATH surfaces as ProcessExecutionError"""
        with pytest.raises(ProcessExecutionError) as exc_info:
            SubprocessRunner().run(["definitely-not-a-real-binary-extdeploy"])

        assert exc_info.value.returncode is None


class TestPsycopgQueryClient:
    def _connect(self, monkeypatch, cursor):
        connection = MagicMock()
        connection.__enter__.return_value = connection
        connection.cursor.return_value.__enter__.return_value = cursor
        connect = MagicMock(return_value=connection)
        monkeypatch.setattr("extdeploy.database.client.psycopg.connect", connect)
        return connect

    def test_returns_rows(self, monkeypatch, credentials):
        cursor = MagicMock()
        cursor.description = [("ext_location",), ("ext_name",)]
        cursor.fetchall.return_value = [("/core", "crm")]
        connect = self._connect(monkeypatch, cursor)

        rows = PsycopgQueryClient(connect_timeout=5).query("select 1", credentials, ["x"])

        assert rows == [("/core", "crm")]
        cursor.execute.assert_called_once_with("select 1", ["x"])
        connect.assert_called_once_with(
            autocommit=True,
            host="db.local",
            port=5433,
            user="admin",
            dbname="appdb",
            password="secret",
            connect_timeout=5,
        )

    def test_statement_without_result_set(self, monkeypatch, credentials):
        cursor = MagicMock()
        cursor.description = None
        self._connect(monkeypatch, cursor)

        assert PsycopgQueryClient().query("drop database x;", credentials) == []
        cursor.fetchall.assert_not_called()

    def test_driver_errors_are_wrapped(self, monkeypatch, credentials):
        def failing_connect(**kwargs):
            raise psycopg.OperationalError("connection refused")

        monkeypatch.setattr("extdeploy.database.client.psycopg.connect", failing_connect)

        with pytest.raises(QueryExecutionError) as exc_info:
            PsycopgQueryClient().query("select 1", credentials)

        assert exc_info.value.database == "appdb"
        assert "connection refused" in str(exc_info.value)


class TestPostgresCommands:
    def test_apply_file_command(self, credentials):
        assert PostgresCommands().apply_file(credentials, Path("/tmp/q.sql")) == [
            "psql",
            "-d",
            "appdb",
            "-U",
            "admin",
            "-h",
            "db.local",
            "-p",
            "5433",
            "-f",
            "/tmp/q.sql",
            "--single-transaction",
        ]

    def test_restore_command(self, credentials):
        command = PostgresCommands(pg_restore="/usr/bin/pg_restore").restore(
            credentials, Path("/b/demo.backup"), jobs=4
        )

        assert command == [
            "/usr/bin/pg_restore",
            "-U",
            "admin",
            "-h",
            "db.local",
            "-p",
            "5433",
            "-d",
            "appdb",
            "-j",
            "4",
            "/b/demo.backup",
        ]

    def test_restore_defaults_jobs_to_cpu_count(self, credentials, monkeypatch):
        monkeypatch.setattr("extdeploy.database.client.os.cpu_count", lambda: 6)

        command = PostgresCommands().restore(credentials, Path("demo.backup"))

        assert command[command.index("-j") + 1] == "6"

    def test_password_only_in_environment(self, credentials):
        command = PostgresCommands().apply_file(credentials, Path("q.sql"))

        assert "secret" not in command
        assert PostgresCommands.environment(credentials) == {"PGPASSWORD": "secret"}
        assert PostgresCommands.environment(credentials.model_copy(update={"password": None})) is None


class TestIntrospection:
    def test_extension_path(self):
        assert extension_path("/core-extensions", "crm") == "/core-extensions/crm"
        assert extension_path("/private/", "sales") == "/private/sales"
        assert extension_path(None, "bare") == "/bare"

    def test_inspector_queries_target_database(self, credentials):
        client = FakeQueryClient(rows={"from xt.ext": [("/core", "crm"), ("/private", "sales")]})

        extensions = QueryExtensionInspector(client)(credentials)

        assert extensions == ["/core/crm", "/private/sales"]
        assert client.calls[0].database == "appdb"

    def test_inspect_orders_by_load_order(self, credentials):
        client = FakeQueryClient()

        assert inspect_installed_extensions(credentials, client) == []
        assert "order by ext_load_order, ext_name" in client.calls[0].sql
