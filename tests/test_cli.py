import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from spec_reconciler.cli import main
from spec_reconciler.errors import EndpointMergeError
from spec_reconciler.reconcile.report import ImportResult

FIXTURES = Path(__file__).parent / "fixtures"


def _invoke(store: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(main, ["--store", str(store), *args])


def _new_spec(store: Path) -> None:
    result = _invoke(store, "new-spec", str(FIXTURES / "petstore.yaml"))
    assert result.exit_code == 0, result.output


class TestCliNewSpec:
    def test_new_spec(self, tmp_path):
        store = tmp_path / "store.json"
        result = _invoke(store, "new-spec", str(FIXTURES / "petstore.yaml"), "--name", "Pets")

        assert result.exit_code == 0
        assert "Created spec 1 with 3 endpoints." in result.output
        data = json.loads(store.read_text())
        assert data["specs"][0]["name"] == "Pets"
        assert data["specs"][0]["format"] == "openapi"

    def test_new_version(self, tmp_path):
        store = tmp_path / "store.json"
        _new_spec(store)
        result = _invoke(store, "new-spec", str(FIXTURES / "petstore_v2.yaml"), "--previous-spec-id", "1")

        assert result.exit_code == 0
        assert "Created spec 2 with 3 endpoints." in result.output
        assert "Mapped 2 endpoints from spec 1." in result.output

    def test_unknown_previous_spec(self, tmp_path):
        result = _invoke(tmp_path / "store.json", "new-spec", str(FIXTURES / "petstore.yaml"), "--previous-spec-id", "9")
        assert result.exit_code == 1
        assert "Spec with ID 9 not found" in result.output


class TestCliAnalyze:
    def test_analyze_report(self, tmp_path):
        store = tmp_path / "store.json"
        _new_spec(store)
        result = _invoke(store, "analyze", str(FIXTURES / "petstore_v2.yaml"), "--spec-id", "1")

        assert result.exit_code == 0
        assert "1 new, 1 modified, 1 unchanged, 1 deprecated" in result.output
        assert "MODIFIED   GET /pets" in result.output
        assert "UNCHANGED  GET /pets/{petId}" in result.output
        assert "NEW        DELETE /pets/{petId}" in result.output
        assert "DEPRECATED POST /pets" in result.output
        assert "~ parameters status (query): type, enum, items" in result.output

    def test_analyze_json(self, tmp_path):
        store = tmp_path / "store.json"
        _new_spec(store)
        result = _invoke(store, "analyze", str(FIXTURES / "petstore_v2.yaml"), "--spec-id", "1", "--json")

        assert result.exit_code == 0
        analysis = json.loads(result.output)
        assert analysis["summary"]["new"] == 1
        assert analysis["summary"]["modified"] == 1

    def test_unsupported_document(self, tmp_path):
        doc = tmp_path / "doc.md"
        doc.write_text("# API Docs\nSome text")
        result = _invoke(tmp_path / "store.json", "analyze", str(doc), "--spec-id", "1")
        assert result.exit_code == 1
        assert "cannot detect the format" in result.output


class TestCliImport:
    def test_import_replaces_and_inserts(self, tmp_path):
        store = tmp_path / "store.json"
        _new_spec(store)
        result = _invoke(store, "import", str(FIXTURES / "petstore_v2.yaml"), "--spec-id", "1")

        assert result.exit_code == 0
        assert "Imported 1, replaced 2, skipped 0, deprecated 2, relinked 0 tests." in result.output
        data = json.loads(store.read_text())
        assert len(data["endpoints"]) == 6

    def test_import_skip_and_deprecate_missing(self, tmp_path):
        store = tmp_path / "store.json"
        _new_spec(store)
        result = _invoke(
            store, "import", str(FIXTURES / "petstore_v2.yaml"), "--spec-id", "1",
            "--on-duplicate", "skip", "--deprecate-missing",
        )

        assert result.exit_code == 0
        assert "Imported 1, replaced 0, skipped 2, deprecated 1" in result.output

    def test_import_into_missing_spec(self, tmp_path):
        result = _invoke(tmp_path / "store.json", "import", str(FIXTURES / "petstore.yaml"), "--spec-id", "4")
        assert result.exit_code == 1
        assert "Spec with ID 4 not found" in result.output

    def test_failures_set_exit_code(self, tmp_path):
        store = tmp_path / "store.json"
        _new_spec(store)
        failed = ImportResult(failed=1, errors=[EndpointMergeError("GET", "/pets", "insert failed: disk full")])

        with patch("spec_reconciler.cli.MergeExecutor") as MockExecutor:
            MockExecutor.return_value.apply = AsyncMock(return_value=failed)
            result = _invoke(store, "import", str(FIXTURES / "petstore.yaml"), "--spec-id", "1")

        assert result.exit_code == 1
        assert "GET /pets: insert failed: disk full" in result.output


class TestCliCompleteness:
    def test_completeness(self, tmp_path):
        result = _invoke(tmp_path / "store.json", "completeness", str(FIXTURES / "sample.postman.json"))
        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert len(lines) == 4
        assert all("%" in line for line in lines)
        assert "GET /users/{userId}" in result.output

    def test_env_store(self, tmp_path):
        store = tmp_path / "env-store.json"
        runner = CliRunner()
        result = runner.invoke(
            main, ["new-spec", str(FIXTURES / "petstore.yaml")], env={"RECONCILER_STORE": str(store)}
        )
        assert result.exit_code == 0
        assert store.exists()
