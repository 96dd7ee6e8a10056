"""End-to-end tests for import_service.run_import()."""

import json

import pytest
from sqlalchemy.exc import OperationalError

from knowledge_base.models import Category, Document, DocumentCategory, ImportJob
from knowledge_base.services import import_job_service, import_service
from knowledge_base.services.database import session_scope
from knowledge_base.services.exceptions import (
    AuthorizationError,
    JobTrackingError,
    UnsupportedFileTypeError,
)
from knowledge_base.services.import_service import run_import, run_import_file
from knowledge_base.services.import_types import ImportActor


def _category(name: str) -> Category:
    with session_scope() as session:
        return session.query(Category).filter(Category.name == name).one()


def _document_category_ids(title: str) -> list:
    with session_scope() as session:
        document = session.query(Document).filter(Document.title == title).one()
        return sorted(document.category_ids)


SAMPLE_EXPORT = {
    "categories": [
        {"id": "c2", "name": "Backend", "parent": "c1", "description": "Services"},
        {"id": "c1", "name": "Engineering", "description": "All engineering"},
    ],
    "documents": [
        {"id": "d1", "title": "Deploying", "body": "<p>Step one</p>", "categories": ["c2"]},
        {"id": "d2", "title": "", "body": "No title"},
        {"id": "d3", "title": "On-call", "body": "Be ready", "categories": "Engineering"},
    ],
}


# ============================================================================
# Scenarios
# ============================================================================


class TestImportScenarios:
    """Representative imports run through the whole pipeline."""

    def test_csv_categories_then_documents(self, test_db, admin, row_count):
        """Root/Child from one CSV, then a document CSV referencing Child."""
        categories = run_import("categories.csv", "name,parent\nRoot,\nChild,Root\n", admin)
        documents = run_import(
            "documents.csv", "title,content,categories\nGuide,Body,Child\n", admin
        )

        assert categories.stats.to_dict() == {"total": 2, "success": 2, "failed": 0}
        assert documents.stats.to_dict() == {"total": 1, "success": 1, "failed": 0}
        assert row_count(Category) == 2
        assert row_count(Document) == 1

        root = _category("Root")
        child = _category("Child")
        assert child.parent_id == root.id
        assert _document_category_ids("Guide") == [child.id]

    def test_json_with_categories_and_documents(self, test_db, admin, row_count):
        """A single JSON file links documents through the ids it declares."""
        report = run_import("export.json", json.dumps(SAMPLE_EXPORT), admin)

        assert report.stats.to_dict() == {"total": 5, "success": 4, "failed": 1}
        assert report.status == "completed"
        assert report.errors == [
            {"error": "Title is required", "row": 2, "item": "d2", "external_id": "d2"}
        ]
        assert [item["kind"] for item in report.imported_items] == [
            "category",
            "category",
            "document",
            "document",
        ]

        engineering = _category("Engineering")
        backend = _category("Backend")
        assert backend.parent_id == engineering.id
        assert _document_category_ids("Deploying") == [backend.id]
        assert _document_category_ids("On-call") == [engineering.id]
        assert row_count(Document) == 2

        job = import_job_service.get_job(report.job_id)
        assert job["status"] == "completed"
        assert job["stats"] == report.stats.to_dict()
        assert job["errors"] == report.errors
        assert job["created_by"] == admin.user_id
        assert job["completed_at"] is not None

    def test_existing_title_is_matched(self, test_db, admin, row_count):
        """The middle document matches a persisted one instead of duplicating it."""
        first = run_import("seed.json", json.dumps([{"title": "Second", "content": "x"}]), admin)
        existing_id = first.imported_items[0]["id"]

        data = [
            {"title": "First", "content": "One"},
            {"title": "Second", "content": "Two"},
            {"title": "Third", "content": "Three"},
        ]
        report = run_import("docs.json", json.dumps(data), admin)

        assert report.stats.to_dict() == {"total": 3, "success": 3, "failed": 0}
        assert report.imported_items[1]["id"] == existing_id
        assert row_count(Document) == 3

    def test_missing_parent_imports_as_root(self, test_db, admin):
        content = json.dumps([{"name": "Child", "parent": "Missing", "description": "d"}])

        dry = run_import("cats.json", content, admin, dry_run=True)
        report = run_import("cats.json", content, admin)

        assert dry.valid is True
        assert dry.warnings == []
        assert report.stats.to_dict() == {"total": 1, "success": 1, "failed": 0}
        assert report.errors == []
        assert report.error is None
        assert _category("Child").parent_id is None

    def test_cyclic_categories_import_as_roots(self, test_db, admin):
        content = json.dumps(
            [{"name": "A", "parent": "B"}, {"name": "B", "parent": "A"}]
        )
        report = run_import("cats.json", content, admin)

        assert report.stats.success == 2
        assert _category("A").parent_id is None
        assert _category("B").parent_id is None

    def test_flat_category_columns(self, test_db, admin):
        """category_name/subcategory_name create and link a two-level tree."""
        content = (
            "page_title,html,category_name,subcategory_name\n"
            "Runbook,<p>Steps</p>,Operations,Incidents\n"
        )
        report = run_import("pages.csv", content, admin)

        assert report.stats.to_dict() == {"total": 3, "success": 3, "failed": 0}
        operations = _category("Operations")
        incidents = _category("Incidents")
        assert incidents.parent_id == operations.id
        assert _document_category_ids("Runbook") == sorted([operations.id, incidents.id])


# ============================================================================
# Properties
# ============================================================================


class TestImportProperties:
    """Idempotence and dry-run behavior."""

    def test_reimport_creates_nothing(self, test_db, admin, row_count):
        content = json.dumps(SAMPLE_EXPORT)
        first = run_import("export.json", content, admin)
        counts = (row_count(Category), row_count(Document), row_count(DocumentCategory))

        second = run_import("export.json", content, admin)

        assert (row_count(Category), row_count(Document), row_count(DocumentCategory)) == counts
        assert second.stats.to_dict() == first.stats.to_dict()
        assert [i["id"] for i in second.imported_items] == [i["id"] for i in first.imported_items]
        assert second.job_id != first.job_id

    def test_dry_run_writes_nothing(self, test_db, admin, row_count):
        report = run_import("export.json", json.dumps(SAMPLE_EXPORT), admin, dry_run=True)

        assert report.dry_run is True
        assert report.job_id is None
        assert report.imported_items == []
        assert row_count(Category) == 0
        assert row_count(Document) == 0
        assert row_count(ImportJob) == 0

    def test_dry_run_matches_real_import(self, test_db, admin):
        content = json.dumps(SAMPLE_EXPORT)

        dry = run_import("export.json", content, admin, dry_run=True)
        real = run_import("export.json", content, admin)

        assert dry.valid is False
        assert dry.stats.to_dict() == real.stats.to_dict()
        assert dry.breakdown == {
            "documents": {"total": 3, "valid": 2},
            "categories": {"total": 2, "valid": 2},
        }

    def test_dry_run_report_shape(self, test_db, admin):
        content = json.dumps([{"name": "Solo"}])
        report = run_import("cats.json", content, admin, dry_run=True)

        assert report.to_dict() == {
            "dryRun": True,
            "stats": {"total": 1, "success": 1, "failed": 0},
            "errors": [],
            "importedItems": [],
            "valid": True,
            "warnings": ["Some categories have no description"],
            "breakdown": {
                "documents": {"total": 0, "valid": 0},
                "categories": {"total": 1, "valid": 1},
            },
        }
        assert report.succeeded is True

    def test_report_shape(self, test_db, admin):
        report = run_import("cats.json", json.dumps([{"name": "Solo"}]), admin)
        result = report.to_dict()

        assert result["dryRun"] is False
        assert result["jobId"] == report.job_id
        assert result["status"] == "completed"
        assert result["importedItems"] == [
            {"kind": "category", "title": "Solo", "id": _category("Solo").id}
        ]
        assert "valid" not in result
        assert "error" not in result

    def test_nothing_imported_fails_the_job(self, test_db, admin):
        content = json.dumps([{"title": "", "content": "Body", "id": "x"}])
        report = run_import("docs.json", content, admin)

        assert report.status == "failed"
        assert report.succeeded is False
        assert import_job_service.get_job(report.job_id)["status"] == "failed"


# ============================================================================
# Failure paths
# ============================================================================


class TestImportFailures:
    """Errors raised before processing and errors caught during it."""

    def test_non_admin_is_rejected(self, test_db, row_count):
        with pytest.raises(AuthorizationError):
            run_import("export.json", "[]", ImportActor("user-2", role="editor"))
        assert row_count(ImportJob) == 0

    def test_unsupported_file_type(self, test_db, admin):
        with pytest.raises(UnsupportedFileTypeError):
            run_import("export.xml", "<xml/>", admin)

    def test_parse_error_is_reported_without_a_job(self, test_db, admin, row_count):
        report = run_import("export.json", "{not json", admin)

        assert report.error.startswith("Invalid JSON format")
        assert report.errors == [{"error": report.error}]
        assert report.job_id is None
        assert report.succeeded is False
        assert row_count(ImportJob) == 0
        assert report.to_dict()["error"] == report.error

    def test_empty_file_is_reported(self, test_db, admin):
        report = run_import("export.csv", "", admin)
        assert report.error == "File is empty"

    def test_job_creation_failure(self, test_db, admin, monkeypatch, row_count):
        def broken_create(file_name, actor_id):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(import_job_service, "create_job", broken_create)

        report = run_import("cats.json", json.dumps([{"name": "Solo"}]), admin)

        assert report.error.startswith("Failed to create import job")
        assert report.job_id is None
        assert row_count(Category) == 0

    def test_unexpected_error_fails_the_job(self, test_db, admin, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(import_service, "import_documents", explode)

        report = run_import("export.json", json.dumps(SAMPLE_EXPORT), admin)

        assert report.status == "failed"
        assert report.error == "boom"
        assert report.errors[-1] == {"error": "Import failed: boom"}
        assert report.succeeded is False

        # Categories committed before the document phase are still reported
        assert [(i["kind"], i["title"]) for i in report.imported_items] == [
            ("category", "Engineering"),
            ("category", "Backend"),
        ]
        assert report.to_dict()["stats"] == {"total": 5, "success": 2, "failed": 0}

        job = import_job_service.get_job(report.job_id)
        assert job["status"] == "failed"
        assert job["stats"] == {"total": 5, "success": 2, "failed": 0}
        assert job["errors"] == [{"error": "Import failed: boom"}]
        assert job["completed_at"] is not None

    def test_tracking_failure_does_not_stop_the_import(
        self, test_db, admin, monkeypatch, row_count
    ):
        def broken_finish(*args, **kwargs):
            raise JobTrackingError("job table unavailable")

        monkeypatch.setattr(import_job_service, "finish_job", broken_finish)

        report = run_import("cats.json", json.dumps([{"name": "Solo"}]), admin)

        assert report.error is None
        assert report.status is None
        assert report.stats.success == 1
        assert row_count(Category) == 1
        assert import_job_service.get_job(report.job_id)["status"] == "processing"


class TestRunImportFile:
    """Tests for run_import_file()."""

    def test_reads_utf8_file(self, test_db, admin, tmp_path):
        path = tmp_path / "cats.csv"
        path.write_text("name,description\nCafé,Coffee\n", encoding="utf-8")

        report = run_import_file(str(path), admin)

        assert report.stats.success == 1
        assert _category("Café").slug == "cafe"

    def test_invalid_utf8_is_reported(self, test_db, admin, tmp_path):
        path = tmp_path / "cats.csv"
        path.write_bytes(b"name\n\xff\xfe\xfa\n")

        report = run_import_file(str(path), admin)

        assert report.error.startswith("File is not valid UTF-8")
        assert report.job_id is None

    def test_missing_file(self, test_db, admin, tmp_path):
        with pytest.raises(FileNotFoundError):
            run_import_file(str(tmp_path / "absent.json"), admin)
