"""
Tests for extension unregistration
"""

import pytest

from extdeploy.database.unregister import (
    UNREGISTER_SQL,
    ExtensionUnregisterer,
    UnregisterTarget,
    extension_name,
)
from extdeploy.domain.errors import AggregateExecutionError, ConfigurationError
from tests.utils import FakeQueryClient

TABLE_ORDER = ["xt.usrext", "xt.grpext", "xt.clientcode", "xt.dict", "xt.extdep", "xt.ext"]


def deleted_table(sql: str) -> str:
    return sql.split()[2]


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/private-extensions/inventory", "inventory"),
        ("/private-extensions/inventory/", "inventory"),
        ("inventory", "inventory"),
    ],
)
def test_extension_name(path, expected):
    assert extension_name(path) == expected


def test_statements_delete_leaf_tables_first():
    assert [deleted_table(sql) for sql in UNREGISTER_SQL] == TABLE_ORDER
    assert "extdep_from_ext_id = ext_id or extdep_to_ext_id = ext_id" in UNREGISTER_SQL[4]


class TestExtensionUnregisterer:
    def test_unregisters_from_every_database(self, credentials, query_client):
        targets = [
            UnregisterTarget(database="dev", extensions=["/private-extensions/inventory"]),
            UnregisterTarget(database="demo", extensions=["/private-extensions/inventory"]),
        ]

        name = ExtensionUnregisterer(query_client).unregister(targets, credentials)

        assert name == "inventory"
        for database in ("dev", "demo"):
            calls = query_client.calls_for(database)
            assert [deleted_table(call.sql) for call in calls] == TABLE_ORDER
            assert all(call.parameters == ["inventory"] for call in calls)
        assert credentials.database == "appdb"

    def test_failure_in_one_database_does_not_block_others(self, credentials):
        query_client = FakeQueryClient(
            fail_when=lambda sql, creds: creds.database == "dev" and "xt.grpext" in sql
        )
        targets = [
            UnregisterTarget(database="dev", extensions=["/x/inventory"]),
            UnregisterTarget(database="demo", extensions=["/x/inventory"]),
        ]

        with pytest.raises(AggregateExecutionError) as exc_info:
            ExtensionUnregisterer(query_client).unregister(targets, credentials)

        # dev stops at its failing statement; demo runs fully
        assert len(query_client.calls_for("dev")) == 2
        assert len(query_client.calls_for("demo")) == 6
        assert [target.database for target, _ in exc_info.value.failures] == ["dev"]

    def test_name_comes_from_first_target(self, credentials, query_client):
        targets = [
            UnregisterTarget(database="dev", extensions=["/x/crm"]),
            UnregisterTarget(database="demo", extensions=["/x/sales"]),
        ]

        ExtensionUnregisterer(query_client).unregister(targets, credentials)

        assert {call.parameters[0] for call in query_client.calls} == {"crm"}

    @pytest.mark.parametrize(
        "targets",
        [[], [UnregisterTarget(database="dev")], [UnregisterTarget(database="dev", extensions=["/"])]],
    )
    def test_missing_extension_is_rejected(self, credentials, query_client, targets):
        with pytest.raises(ConfigurationError):
            ExtensionUnregisterer(query_client).unregister(targets, credentials)

        assert query_client.calls == []
