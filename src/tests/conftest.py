"""Pytest configuration and fixtures for service layer tests."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker

from knowledge_base.models.base import Base
from knowledge_base.services.database import session_scope
from knowledge_base.services.import_types import ImportActor


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    # Register every model before create_all
    from knowledge_base import models  # noqa: F401

    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import knowledge_base.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session


@pytest.fixture
def admin():
    """Administrator performing imports."""
    return ImportActor(user_id="admin-1")


@pytest.fixture
def category_chain(test_db):
    """Root -> Child -> Grandchild, created through the category API."""
    from knowledge_base.services import category_service

    root = category_service.create_category(name="Root", actor_id="admin-1")
    child = category_service.create_category(
        name="Child", actor_id="admin-1", parent_id=root["id"]
    )
    grandchild = category_service.create_category(
        name="Grandchild", actor_id="admin-1", parent_id=child["id"]
    )
    return root, child, grandchild


@pytest.fixture
def row_count(test_db):
    """Return a function counting the rows of a model."""

    def _count(model) -> int:
        with session_scope() as session:
            return session.query(model).count()

    return _count
