"""Root conftest: shared fixtures for all applifix tests."""

from __future__ import annotations

import os
import tempfile

# Keep the developer's conf.json and database out of the test run
os.environ.setdefault("APPLIFIX_DIR", tempfile.mkdtemp(prefix="applifix-test-"))
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from applifix.database import Base, build_engine
# register all models with Base
import applifix.models  # noqa: F401

# Use in-memory SQLite for tests; StaticPool ensures all connections share the same DB
TEST_ENGINE = build_engine("sqlite:///:memory:", poolclass=StaticPool)
TestSession = sessionmaker(bind=TEST_ENGINE, autoflush=False, expire_on_commit=False)


@pytest.fixture(autouse=True)
def _setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=TEST_ENGINE)
    yield
    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db():
    """Yield a test database session."""
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_profile(db):
    from applifix.models.user import UserProfile

    profile = UserProfile(username="testuser", email="test@example.com")
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def api_key(db, user_profile):
    from applifix.models.user import APIKey

    key = APIKey(user_id=user_profile.id)
    db.add(key)
    db.commit()
    db.refresh(key)
    return key


@pytest.fixture
def other_user(db):
    from applifix.models.user import APIKey, UserProfile

    profile = UserProfile(username="otheruser", email="other@example.com")
    db.add(profile)
    db.flush()
    db.add(APIKey(user_id=profile.id))
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def topic(db):
    from applifix.models.topic import Topic

    t = Topic(
        title="Fridge not cooling",
        description="My refrigerator runs but the inside stays warm.",
        src="topics/fridge.png",
    )
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


@pytest.fixture
def conversation(db, user_profile):
    """A conversation owned by ``user_profile`` with one exchange in it."""
    from applifix.models.conversation import Conversation, ConversationTurn, Speaker

    conv = Conversation(title="Washer leaks", owner_id=user_profile.id)
    db.add(conv)
    db.flush()
    db.add_all([
        ConversationTurn(
            conversation_id=conv.id, author_id=user_profile.id,
            body="Washer leaks", speaker=Speaker.user,
        ),
        ConversationTurn(
            conversation_id=conv.id, author_id=user_profile.id,
            body="Check the door seal.", speaker=Speaker.assistant,
        ),
    ])
    db.commit()
    db.refresh(conv)
    return conv
