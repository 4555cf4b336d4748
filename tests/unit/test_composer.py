"""
Tests for ExtensionComposer
"""

import pytest

from extdeploy.config import ComposeOptions
from extdeploy.core.composer import JS_INIT_SQL, ExtensionComposer
from extdeploy.core.manifest import ExtensionDescriptor, ManifestLayout
from extdeploy.core.registration import build_registration_sql
from extdeploy.domain.errors import ScriptFormatError, WipeScriptReadError

WIPE_SQL = "select dropIfExists('VIEW', '*');\n"


@pytest.fixture
def wipe_script(tmp_path):
    path = tmp_path / "delete_system_orms.sql"
    path.write_text(WIPE_SQL, encoding="utf-8")
    return path


@pytest.fixture
def descriptor():
    return ExtensionDescriptor(name="inventory", comment="Inventory", dependencies=["crm"])


class TestCompose:
    def test_plain_bundle_is_concatenated_fragments(self, descriptor):
        sql = ExtensionComposer().compose(["one;", "two;"], descriptor)

        assert sql == "one;two;"

    def test_full_preamble_order(self, descriptor, wipe_script):
        options = ComposeOptions(
            register_extension=True,
            run_js_init=True,
            wipe_views=True,
            extension_location="/private",
        )

        sql = ExtensionComposer(wipe_script=wipe_script).compose(["body;"], descriptor, options)

        assert sql == (
            WIPE_SQL + JS_INIT_SQL + build_registration_sql(descriptor, "/private") + "body;"
        )

    def test_js_init_without_registration(self, descriptor):
        sql = ExtensionComposer().compose(["body;"], descriptor, ComposeOptions(run_js_init=True))

        assert sql == "select xt.js_init();\nbody;"

    def test_wipe_views_without_script_fails(self, descriptor):
        with pytest.raises(WipeScriptReadError):
            ExtensionComposer().compose([], descriptor, ComposeOptions(wipe_views=True))

    def test_unreadable_wipe_script_fails(self, descriptor, tmp_path):
        composer = ExtensionComposer(wipe_script=tmp_path / "missing.sql")

        with pytest.raises(WipeScriptReadError) as exc_info:
            composer.compose([], descriptor, ComposeOptions(wipe_views=True))

        assert exc_info.value.path.endswith("missing.sql")


class TestBuild:
    def test_builds_bundle_from_manifest(self, inventory_dir):
        composed = ExtensionComposer().build(ManifestLayout.for_extension(inventory_dir))

        assert composed.name == "inventory"
        assert [fragment.path.name for fragment in composed.fragments] == [
            "create_itemsite.sql",
            "fn_qoh.sql",
            "fn_reorder.sql",
        ]
        assert composed.sql.index("create table itemsite") < composed.sql.index("select reorder();")
        assert composed.sql.count("RAISE NOTICE 'Loading file") == 3

    def test_registration_and_foundation(self, inventory_dir):
        options = ComposeOptions(
            use_foundation_scripts=True, register_extension=True, extension_location="/private"
        )

        composed = ExtensionComposer().build(ManifestLayout.for_extension(inventory_dir), options)

        assert composed.sql.startswith("select xt.grant_role_ext('ADMIN', 'inventory');")
        assert composed.sql.index("register_extension_dependency('inventory', 'crm')") < (
            composed.sql.index("create table whsinfo")
        )
        assert composed.sql.index("create table whsinfo") < composed.sql.index("create table itemsite")
        assert composed.default_schema == "inv"

    def test_compile_failure_yields_no_bundle(self, tree):
        extension_dir = tree.extension(
            "broken",
            manifest={"databaseScripts": ["good.sql", "bad.sql"]},
            scripts={"good.sql": "select 1;", "bad.sql": "select 2"},
        )

        with pytest.raises(ScriptFormatError):
            ExtensionComposer().build(ManifestLayout.for_extension(extension_dir))

    def test_extension_without_manifest_registers_only(self, tree):
        extension_dir = tree.extension("clientonly", package={"name": "clientonly"})

        composed = ExtensionComposer().build(
            ManifestLayout.for_extension(extension_dir),
            ComposeOptions(register_extension=True, extension_location="/x"),
        )

        assert composed.fragments == []
        assert composed.sql == build_registration_sql(composed.descriptor, "/x")
