"""Tests for service layer structured logging.

These tests verify that the logging helpers attach structured context and
that import and hierarchy operations emit entries an operator can filter on.
"""

import logging

import pytest

from knowledge_base.services import category_service
from knowledge_base.services.exceptions import SelfParentError
from knowledge_base.services.import_service import run_import
from knowledge_base.services.logging_utils import get_service_logger, log_operation


def _records(caplog, operation):
    return [r for r in caplog.records if getattr(r, "operation", None) == operation]


class TestLoggingUtilities:
    """Tests for logging utility functions."""

    def test_get_service_logger_returns_logger(self):
        """get_service_logger returns a configured Logger instance."""
        logger = get_service_logger("test_module")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "knowledge_base.services.test_module"

    def test_get_service_logger_extracts_module_name(self):
        """get_service_logger extracts module name from full path."""
        logger = get_service_logger("knowledge_base.services.category_import_service")
        assert logger.name == "knowledge_base.services.category_import_service"

    def test_log_operation_logs_at_info_level(self, caplog):
        """log_operation logs at INFO level by default."""
        logger = get_service_logger("test")

        with caplog.at_level(logging.INFO):
            log_operation(logger, operation="test_op", outcome="success", job_id=1)

        assert "test_op: success" in caplog.text
        assert caplog.records[0].levelno == logging.INFO

    def test_log_operation_logs_at_custom_level(self, caplog):
        """log_operation respects custom log level."""
        logger = get_service_logger("test")

        with caplog.at_level(logging.DEBUG):
            log_operation(
                logger,
                operation="debug_op",
                outcome="debug_outcome",
                level=logging.DEBUG,
            )

        assert "debug_op: debug_outcome" in caplog.text

    def test_log_operation_includes_extra_context(self, caplog):
        """log_operation includes extra context in log records."""
        logger = get_service_logger("test")

        with caplog.at_level(logging.INFO):
            log_operation(
                logger,
                operation="context_test",
                outcome="success",
                category_id=42,
                external_id="cat-7",
            )

        assert len(caplog.records) == 1
        record = caplog.records[0]
        assert record.operation == "context_test"
        assert record.outcome == "success"
        assert record.category_id == 42
        assert record.external_id == "cat-7"


class TestImportLogging:
    """Tests for log entries emitted by an import run."""

    def test_job_transitions_are_logged(self, test_db, admin, caplog):
        with caplog.at_level(logging.INFO):
            report = run_import("cats.csv", "name\nSolo\n", admin)

        transitions = [r.outcome for r in _records(caplog, "import_job_transition")]
        assert transitions == ["processing", "completed"]
        assert all(r.job_id == report.job_id for r in _records(caplog, "import_job_transition"))

    def test_run_summary_is_logged(self, test_db, admin, caplog):
        with caplog.at_level(logging.INFO):
            report = run_import("cats.csv", "name\nSolo\n", admin)

        summary = _records(caplog, "run_import")[-1]
        assert summary.outcome == "completed"
        assert summary.job_id == report.job_id
        assert summary.success == 1

    def test_category_phase_summary_is_logged(self, test_db, admin, caplog):
        with caplog.at_level(logging.INFO):
            report = run_import("cats.csv", "name\nOps\nDev\n", admin)

        summary = _records(caplog, "import_categories")[-1]
        assert summary.job_id == report.job_id
        assert (summary.imported, summary.failed, summary.mapped) == (2, 0, 2)

    def test_parse_failure_is_logged(self, test_db, admin, caplog):
        with caplog.at_level(logging.INFO):
            run_import("cats.json", "{broken", admin)

        failures = _records(caplog, "parse_import")
        assert failures[0].outcome == "parse_error"
        assert failures[0].file_name == "cats.json"

    def test_invalid_item_is_logged_with_job(self, test_db, admin, caplog):
        with caplog.at_level(logging.INFO):
            report = run_import("docs.csv", "title,content\nNo body,\n", admin)

        invalid = _records(caplog, "import_document")
        assert invalid[0].outcome == "invalid"
        assert invalid[0].job_id == report.job_id
        assert invalid[0].error == "Content is required"


class TestHierarchyLogging:
    """Tests for log entries emitted by the hierarchy guard."""

    def test_rejection_is_logged(self, test_db, category_chain, caplog):
        root_id = category_chain[0]["id"]

        with caplog.at_level(logging.INFO):
            with pytest.raises(SelfParentError):
                category_service.update_category(root_id, parent_id=root_id)

        rejected = _records(caplog, "validate_parent_assignment")
        assert rejected[0].outcome == "rejected"
        assert rejected[0].category_id == root_id

    def test_move_is_logged(self, test_db, category_chain, caplog):
        child_id = category_chain[1]["id"]

        with caplog.at_level(logging.INFO):
            category_service.update_category(child_id, parent_id=None)

        moves = _records(caplog, "move_category")
        assert moves[0].previous_parent_id == category_chain[0]["id"]
        assert moves[0].parent_id is None
