"""
Tests for ScriptCompiler
"""

import logging
from pathlib import Path

import pytest

from extdeploy.core.compiler import ScriptCompiler
from extdeploy.core.transforms import TransformRegistry, default_registry
from extdeploy.domain.errors import (
    ScriptFormatError,
    ScriptNotFoundError,
    ScriptReadError,
    UnsupportedScriptFormatError,
)

NOTICE = "do $$ BEGIN RAISE NOTICE 'Loading file {}'; END $$ language plpgsql;\n"


def write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


class TestCompile:
    def test_prefixes_notice_and_strips_body(self, tmp_path):
        script = write(tmp_path / "create_table.sql", "\n  create table t (id int);  \n\n")

        fragment = ScriptCompiler().compile(script)

        assert fragment.compiled_sql == "\n" + NOTICE.format("create_table.sql") + "create table t (id int);"
        assert fragment.raw_text == "\n  create table t (id int);  \n\n"
        assert fragment.format == "sql"
        assert fragment.path == script

    def test_missing_file(self, tmp_path):
        missing = tmp_path / "nope.sql"

        with pytest.raises(ScriptNotFoundError) as exc_info:
            ScriptCompiler().compile(missing)

        assert str(exc_info.value) == f"{missing} does not exist"
        assert exc_info.value.path == str(missing)

    def test_unreadable_file(self, tmp_path):
        script = tmp_path / "binary.sql"
        script.write_bytes(b"\xff\xfe\xfa;")

        with pytest.raises(ScriptReadError):
            ScriptCompiler().compile(script)

    def test_unterminated_script_raises(self, tmp_path):
        script = write(tmp_path / "bad.sql", "select 1")

        with pytest.raises(ScriptFormatError) as exc_info:
            ScriptCompiler().compile(script)

        assert str(exc_info.value) == f"Error: {script} contents do not end in a semicolon."

    def test_unterminated_script_warns_in_lenient_mode(self, tmp_path, caplog):
        script = write(tmp_path / "bad.sql", "select 1")

        with caplog.at_level(logging.WARNING, logger="extdeploy"):
            fragment = ScriptCompiler(on_format_error="warn").compile(script)

        assert fragment.compiled_sql.endswith("select 1")
        assert "do not end in a semicolon" in caplog.text

    def test_unknown_extension(self, tmp_path):
        script = write(tmp_path / "form.uiform", "{}")

        with pytest.raises(UnsupportedScriptFormatError):
            ScriptCompiler().compile(script)

    def test_custom_transform_receives_default_schema(self, tmp_path):
        seen = {}

        def metasql(text, path, default_schema):
            seen["schema"] = default_schema
            seen["path"] = path
            return f"select saveMetasql('{default_schema}', '{text.strip()}');"

        registry = default_registry()
        registry.register("mql", metasql)
        script = write(tmp_path / "query.mql", "select 2")

        fragment = ScriptCompiler(registry).compile(script, default_schema="xm")

        assert seen == {"schema": "xm", "path": script}
        assert fragment.compiled_sql.endswith("select saveMetasql('xm', 'select 2');")
        assert fragment.format == "mql"

    def test_transform_value_error_becomes_format_error(self, tmp_path):
        def broken(text, path, default_schema):
            raise ValueError("bad xml")

        registry = TransformRegistry()
        registry.register("report", broken)
        script = write(tmp_path / "r.report", "<report/>")

        with pytest.raises(ScriptFormatError, match="bad xml"):
            ScriptCompiler(registry).compile(script)


class TestCompileAll:
    def test_compiles_in_manifest_order(self, tmp_path):
        write(tmp_path / "a.sql", "select 'a';")
        (tmp_path / "sub").mkdir()
        write(tmp_path / "sub" / "b.sql", "select 'b';")

        fragments = ScriptCompiler().compile_all(["sub/b.sql", "a.sql"], tmp_path)

        assert [fragment.path.name for fragment in fragments] == ["b.sql", "a.sql"]

    def test_stops_at_first_failure(self, tmp_path, monkeypatch):
        write(tmp_path / "a.sql", "select 'a';")
        write(tmp_path / "c.sql", "select 'c';")
        compiler = ScriptCompiler()
        compiled = []
        original = compiler.compile

        def tracking(path, default_schema=None):
            compiled.append(Path(path).name)
            return original(path, default_schema)

        monkeypatch.setattr(compiler, "compile", tracking)

        with pytest.raises(ScriptNotFoundError):
            compiler.compile_all(["a.sql", "missing.sql", "c.sql"], tmp_path)

        assert compiled == ["a.sql", "missing.sql"]
