from pathlib import Path

import pytest

from extdeploy.config import ConnectionCredentials
from tests.utils import ExtensionTreeBuilder, FakeProcessRunner, FakeQueryClient


@pytest.fixture
def credentials():
    """Credentials pointing at an application database"""
    return ConnectionCredentials(
        username="admin",
        hostname="db.local",
        port=5433,
        database="appdb",
        password="secret",
    )


@pytest.fixture
def query_client():
    return FakeQueryClient()


@pytest.fixture
def runner():
    return FakeProcessRunner()


@pytest.fixture
def tree(tmp_path) -> ExtensionTreeBuilder:
    return ExtensionTreeBuilder(tmp_path / "checkout")


@pytest.fixture
def inventory_dir(tree: ExtensionTreeBuilder) -> Path:
    """Inventory extension with its own, foundation and frozen scripts"""
    return tree.extension(
        "inventory",
        manifest={
            "name": "inventory",
            "comment": "Inventory management",
            "loadOrder": 100,
            "dependencies": ["crm"],
            "databaseScripts": ["create_itemsite.sql", ["fn_qoh.sql", "fn_reorder.sql"]],
        },
        scripts={
            "create_itemsite.sql": "create table itemsite (id serial);\n",
            "fn_qoh.sql": "create function qoh() returns int as $$ select 1 $$ language sql;",
            "fn_reorder.sql": "  select reorder();  \n\n",
        },
        foundation_manifest={
            "defaultSchema": "inv",
            "databaseScripts": ["base_tables.sql"],
        },
        frozen_manifest={
            "defaultSchema": "frozen_schema",
            "databaseScripts": ["one_time_setup.sql"],
        },
        foundation_scripts={
            "base_tables.sql": "create table whsinfo (id serial);",
            "one_time_setup.sql": "insert into metric values ('Setup', 't');",
        },
    )
