import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from main import app
from database import Base, get_db, get_session_factory, init_db
from models import Friendship, User
from auth import get_password_hash, create_access_token
from utils.realtime import RealtimeChannel

# Setup in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    init_db(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def client(db_session):
    """Create a FastAPI TestClient with overridden database dependencies and a fresh channel."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.state.realtime = RealtimeChannel()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_session_factory, None)

def headers_for(user):
    """Authorization headers for any user."""
    access_token = create_access_token(data={"sub": user.email})
    return {"Authorization": f"Bearer {access_token}"}

@pytest.fixture
def make_user(db_session):
    """Factory that creates a user with a password of 'password123'."""
    def _make_user(username, display_name=None):
        user = User(
            username=username,
            email=f"{username}@example.com",
            display_name=display_name or username.capitalize(),
            hashed_password=get_password_hash("password123")
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user

@pytest.fixture
def make_friends(db_session):
    """Factory that makes two users accepted friends directly in the database."""
    def _make_friends(user, other):
        low, high = sorted((user.id, other.id))
        friendship = Friendship(
            user_id=user.id,
            friend_id=other.id,
            status="accepted",
            user_low_id=low,
            user_high_id=high
        )
        db_session.add(friendship)
        db_session.commit()
        return friendship
    return _make_friends

@pytest.fixture
def test_user(make_user):
    """Create a test user and return the user object."""
    return make_user("testuser", "Test User")

@pytest.fixture
def auth_headers(test_user):
    """Return authorization headers for the test user."""
    return headers_for(test_user)
