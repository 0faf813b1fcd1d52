"""
Shared fixtures: engine configuration and an in-memory database.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from costcontrol.config import get_config
from costcontrol.models import Base, Project


@pytest.fixture
def config():
    """The packaged engine configuration."""
    return get_config()


@pytest.fixture(scope="function")
def db_session():
    """Create a test database with fresh tables for each test."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def project(db_session):
    """A project with per diem enabled at 150 direct / 100 indirect."""
    project = Project(
        id="proj-1",
        name="Refinery Turnaround",
        job_number="5800",
        original_contract=1000000,
        base_margin_percentage=15,
        per_diem_enabled=True,
        per_diem_rate_direct=150,
        per_diem_rate_indirect=100,
    )
    db_session.add(project)
    db_session.commit()
    return project
