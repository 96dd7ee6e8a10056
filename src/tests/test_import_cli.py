"""Tests for the kb-import command line."""

import json

import pytest

from knowledge_base.services import category_service
from knowledge_base.utils import import_cli


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def cli_db(test_db, monkeypatch):
    """Run CLI commands against the test database."""
    monkeypatch.setattr(import_cli, "initialize_app_database", lambda: None)
    return test_db


@pytest.fixture
def categories_json(tmp_path):
    """Create a small category export."""
    file_path = tmp_path / "categories.json"
    data = [
        {"id": "c1", "name": "Engineering", "description": "Eng"},
        {"id": "c2", "name": "Backend", "parent": "c1"},
    ]
    file_path.write_text(json.dumps(data), encoding="utf-8")
    return str(file_path)


# ============================================================================
# Commands
# ============================================================================


class TestImportCommand:
    """Tests for `kb-import import`."""

    def test_dry_run(self, cli_db, categories_json, capsys):
        exit_code = import_cli.main(["import", categories_json, "--dry-run"])

        output = capsys.readouterr().out
        assert exit_code == 0
        assert "Dry run - nothing was written" in output
        assert "Valid: yes" in output
        assert "WARNING: Some categories have no description" in output
        assert category_service.list_categories() == []

    def test_import(self, cli_db, categories_json, capsys):
        exit_code = import_cli.main(["import", categories_json, "--user", "admin-9"])

        output = capsys.readouterr().out
        assert exit_code == 0
        assert "Import job 1: completed" in output
        assert "Success: 2" in output
        assert [c["created_by"] for c in category_service.list_categories()] == [
            "admin-9",
            "admin-9",
        ]

    def test_import_with_errors(self, cli_db, tmp_path, capsys):
        file_path = tmp_path / "docs.csv"
        file_path.write_text("title,content\nNo body,\n", encoding="utf-8")

        exit_code = import_cli.main(["import", str(file_path)])

        output = capsys.readouterr().out
        assert exit_code == 1
        assert "failed" in output
        assert "row 1: No body: Content is required" in output

    def test_missing_file(self, cli_db, tmp_path, capsys):
        exit_code = import_cli.main(["import", str(tmp_path / "absent.json")])
        assert exit_code == 1
        assert "File not found" in capsys.readouterr().out

    def test_unsupported_file(self, cli_db, tmp_path, capsys):
        file_path = tmp_path / "export.txt"
        file_path.write_text("hello", encoding="utf-8")

        exit_code = import_cli.main(["import", str(file_path)])

        assert exit_code == 1
        assert "Only CSV and JSON" in capsys.readouterr().out


class TestJobCommands:
    """Tests for `kb-import jobs` and `kb-import job`."""

    def test_no_jobs(self, cli_db, capsys):
        assert import_cli.main(["jobs"]) == 0
        assert "No import jobs found" in capsys.readouterr().out

    def test_list_and_show(self, cli_db, categories_json, capsys):
        import_cli.main(["import", categories_json])
        capsys.readouterr()

        assert import_cli.main(["jobs"]) == 0
        listing = capsys.readouterr().out
        assert "#1 completed" in listing
        assert "categories.json 2/2 ok" in listing

        assert import_cli.main(["job", "1"]) == 0
        detail = capsys.readouterr().out
        assert "Status:    completed" in detail
        assert "by cli-admin" in detail

    def test_unknown_job(self, cli_db, capsys):
        assert import_cli.main(["job", "99"]) == 1
        assert "not found" in capsys.readouterr().out

    def test_invalid_limit(self, cli_db, capsys):
        assert import_cli.main(["jobs", "--limit", "0"]) == 1
        assert "Limit must be at least 1" in capsys.readouterr().out


class TestTreeCommand:
    """Tests for `kb-import tree`."""

    def test_empty_tree(self, cli_db, capsys):
        assert import_cli.main(["tree"]) == 0
        assert "No categories" in capsys.readouterr().out

    def test_tree(self, cli_db, category_chain, capsys):
        assert import_cli.main(["tree"]) == 0
        assert capsys.readouterr().out.splitlines() == [
            "- Root (0)",
            "  - Child (0)",
            "    - Grandchild (0)",
        ]


def test_no_command_prints_help(capsys):
    assert import_cli.main([]) == 1
    assert "usage: kb-import" in capsys.readouterr().out
