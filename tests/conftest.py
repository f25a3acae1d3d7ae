"""
Pytest configuration and fixtures for testing the planning workflow backend.
"""
import sys
import os
from datetime import datetime, timezone
from typing import Callable, Dict, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add the parent directory to the path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.main import app
from app.api.deps import get_conversation_manager
from app.core.rate_limit import limiter
from app.core.security import create_access_token, hash_password
from app.db.session import Base, get_db
from app.models.document import DocumentStatus, PlanningDocument
from app.models.project import Project, ProjectMember, ProjectRole
from app.models.user import GlobalRole, User
from app.services.conversation_buffer import ConversationBufferManager, SqlConversationStore


# Create in-memory SQLite database for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "TestPassword123!"
# bcrypt is slow on purpose; hash once per run
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Create a fresh database for each test function.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def conversation_manager(db: Session) -> ConversationBufferManager:
    return ConversationBufferManager(
        SqlConversationStore(TestingSessionLocal),
        max_messages=100,
        flush_threshold=10,
    )


@pytest.fixture(scope="function")
def client(db: Session, conversation_manager: ConversationBufferManager) -> Generator[TestClient, None, None]:
    """
    Create a test client with the test database.
    """
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_conversation_manager] = lambda: conversation_manager

    # Reset rate limiter for each test to avoid rate limit issues in tests
    limiter.reset()

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    def _make_user(email: str, role: GlobalRole = GlobalRole.user, full_name: Optional[str] = None) -> User:
        user = User(
            full_name=full_name or email.split("@")[0].title(),
            email=email,
            password_hash=TEST_PASSWORD_HASH,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user("admin@test.com", GlobalRole.admin, "Admin User")


@pytest.fixture
def creator_user(make_user) -> User:
    """Creates the project; holds no project role."""
    return make_user("creator@test.com", full_name="Project Creator")


@pytest.fixture
def outsider_user(make_user) -> User:
    return make_user("outsider@test.com", full_name="Outsider")


@pytest.fixture
def members(make_user) -> Dict[ProjectRole, User]:
    """One user per project role."""
    return {
        role: make_user(f"{role.value}@test.com", full_name=role.value.replace("_", " ").title())
        for role in ProjectRole
    }


@pytest.fixture
def project(db: Session, creator_user: User, members: Dict[ProjectRole, User]) -> Project:
    project = Project(name="Test Project", description="Planning test project", created_by=creator_user.id)
    db.add(project)
    db.commit()
    db.refresh(project)

    for role, user in members.items():
        db.add(ProjectMember(project_id=project.id, user_id=user.id, role=role, added_by=creator_user.id))
    db.commit()
    return project


@pytest.fixture
def make_document(db: Session) -> Callable[..., PlanningDocument]:
    def _make_document(
        project: Project,
        author: User,
        workflow_step: int = 1,
        status: DocumentStatus = DocumentStatus.private,
        content: str = "Initial plan content",
        title: str = "Service overview",
        approver: Optional[User] = None,
    ) -> PlanningDocument:
        approved = status == DocumentStatus.official
        document = PlanningDocument(
            project_id=project.id,
            workflow_step=workflow_step,
            title=title,
            content=content,
            status=status,
            version=1,
            created_by=author.id,
            approved_by=(approver or author).id if approved else None,
            approved_at=datetime.now(timezone.utc) if approved else None,
        )
        db.add(document)
        db.commit()
        db.refresh(document)
        return document

    return _make_document


def auth_headers_for(user: User) -> Dict[str, str]:
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers() -> Callable[[User], Dict[str, str]]:
    return auth_headers_for


@pytest.fixture
def test_password() -> str:
    return TEST_PASSWORD
