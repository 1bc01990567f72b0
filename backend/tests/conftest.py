import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from bracket_api.database import get_session
from bracket_api.main import app
from bracket_api.models.participant import Participant
from bracket_api.models.tournament import Tournament

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Models imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables dropped and recreated per test so brackets never leak between tests
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    from bracket_api.models.match import Match  # noqa: F401
    from bracket_api.models.participant import Participant  # noqa: F401
    from bracket_api.models.tournament import Tournament  # noqa: F401

    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Test client whose requests use the in-memory test engine"""
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_tournament(session: Session):
    """Factory: tournament with *n* registered participants named A, B, C, ..."""

    def _make(n: int, name: str = "Bracket Cup"):
        tournament = Tournament(name=name, game="Rocket League")
        session.add(tournament)
        session.commit()
        session.refresh(tournament)

        participants = []
        for i in range(n):
            label = chr(ord("A") + i) if i < 26 else f"P{i + 1}"
            p = Participant(tournament_id=tournament.id, user_id=f"user-{label}", display_name=label, seed=i + 1)
            session.add(p)
            participants.append(p)
        session.commit()
        for p in participants:
            session.refresh(p)
        return tournament, participants

    return _make
