"""
Pytest configuration and fixtures

Tests run against a throw-away SQLite database built by the Alembic
migrations. Every table is emptied after each test, so tests never see
each other's rows.
"""
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Environment must be in place before core.config is imported.
_TEST_DIR = Path(tempfile.mkdtemp(prefix="gym-content-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR / 'test.db'}"
os.environ["SECRET_KEY"] = "test-secret-key-for-jwt-signing-only-0123456789"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_LOCAL_ROOT"] = str(_TEST_DIR / "uploads")
os.environ["LOG_FORMAT"] = "text"
os.environ["EXTERNAL_API_RETRY_ATTEMPTS"] = "2"

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture(scope="session", autouse=True)
def _ensure_db_schema_is_at_head():
    """Build the test database schema by running every Alembic migration."""
    try:
        from alembic import command
        from alembic.config import Config

        api_root = Path(__file__).resolve().parents[1]
        cfg = Config(str(api_root / "alembic.ini"))
        cfg.set_main_option("script_location", str(api_root / "alembic"))
        command.upgrade(cfg, "head")
    except Exception as e:
        # Tests should fail loudly if migrations cannot be applied.
        raise RuntimeError(f"Failed to upgrade DB to Alembic head: {e}") from e


from core.database import Base, SessionLocal, engine  # noqa: E402
from core.security import create_access_token  # noqa: E402
from core.tenancy import with_tenant  # noqa: E402
from models import AssignmentDistribution, AssignmentTemplate, FormatSubmission, GymTenant  # noqa: E402
from services.content_catalog import seed_default_formats  # noqa: E402
from services.object_storage import LocalObjectStore  # noqa: E402

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_gym(db_session):
    def _make(gym_id: str, pin_code: str = None, role: str = "member", active: bool = True, name: str = None):
        gym = GymTenant(
            id=gym_id,
            gym_name=name or f"Gym {gym_id}",
            gym_location="Test City",
            pin_code=pin_code or f"pin-{gym_id}",
            role=role,
            active=active,
        )
        db_session.add(gym)
        db_session.commit()
        db_session.refresh(gym)
        return gym
    return _make


@pytest.fixture
def admin_gym(make_gym):
    return make_gym("HQ", pin_code="9999", role="admin", name="Head Office")


@pytest.fixture
def gym_a(make_gym):
    return make_gym("CPF", pin_code="1111", name="Capital Fitness")


@pytest.fixture
def gym_b(make_gym):
    return make_gym("NSG", pin_code="2222", name="North Side Gym")


@pytest.fixture
def formats(db_session):
    return {f.format_key: f for f in seed_default_formats(db_session)}


@pytest.fixture
def admin_scope(db_session, admin_gym):
    return with_tenant(db_session, admin_gym)


@pytest.fixture
def scope_a(db_session, gym_a):
    return with_tenant(db_session, gym_a)


@pytest.fixture
def store(tmp_path):
    return LocalObjectStore(root=str(tmp_path / "objects"), bucket="assignment-content", public_base_url="http://test/uploads")


@pytest.fixture
def make_distribution(db_session, admin_gym, formats):
    """Insert one template + distribution directly, bypassing the fan-out service."""
    def _make(gym, status: str = "assigned", due_date: datetime = None, created_at: datetime = None,
              submitted_at: datetime = None, title: str = "Handstand Week", format_keys=("video-reel",)):
        template = AssignmentTemplate(
            title=title,
            description="Film the handstand progression",
            priority="high",
            formats_required=list(format_keys),
            content_requirements=[],
            created_by_admin=admin_gym.id,
        )
        db_session.add(template)
        db_session.flush()
        distribution = AssignmentDistribution(
            template_id=template.id,
            assigned_to_gym_id=gym.id,
            assigned_by_admin=admin_gym.id,
            due_date=due_date or NOW + timedelta(days=7),
            status=status,
            created_at=created_at or NOW - timedelta(days=1),
            submitted_at=submitted_at,
        )
        db_session.add(distribution)
        db_session.commit()
        db_session.refresh(distribution)
        return distribution
    return _make


@pytest.fixture
def make_submission(db_session, formats):
    """Insert one uploaded file row against a distribution."""
    def _make(distribution, format_key: str = "video-reel", status: str = "pending"):
        fmt = formats[format_key]
        submission = FormatSubmission(
            gym_id=distribution.assigned_to_gym_id,
            format_id=fmt.id,
            distribution_id=distribution.id,
            file_name="clip.mp4",
            file_path=f"{distribution.assigned_to_gym_id}/{format_key}/clip.mp4",
            file_url="http://test/uploads/clip.mp4",
            file_size=10,
            file_type="video",
            status=status,
        )
        db_session.add(submission)
        db_session.commit()
        return submission
    return _make


@pytest.fixture
def auth_headers():
    def _headers(gym: GymTenant) -> dict:
        token = create_access_token(gym.id, gym.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers
