import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import main
from ai_gateway import UpstreamUnavailable, get_gateway
from database import Admin, Base, Lawyer, User, get_db
from security import create_access_token, hash_password

DEFAULT_OUTPUT = json.dumps({
    "response": "### Answer\n- File a complaint at the police station.",
    "citations": ["Section 173 BNSS - Information in Cognizable Cases"],
    "disclaimer": "This is legal information, not legal advice.",
})


class FakeGateway:
    """Stands in for AIGateway; replays scripted outputs and records calls."""

    def __init__(self, outputs=None, configured=True):
        self.outputs = list(outputs or [])
        self._configured = configured
        self.calls = []

    @property
    def configured(self):
        return self._configured

    def script(self, *outputs):
        self.outputs.extend(outputs)

    async def generate(self, query, context=None, image_b64=None):
        self.calls.append({"query": query, "context": context, "image_b64": image_b64})
        out = self.outputs.pop(0) if self.outputs else DEFAULT_OUTPUT
        if isinstance(out, Exception):
            raise out
        return out

    async def transcribe(self, filename, data):
        self.calls.append({"filename": filename, "size": len(data)})
        if not data:
            raise UpstreamUnavailable("empty audio")
        return "how do i file an fir"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(session_factory, gateway):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    main.app.dependency_overrides[get_db] = _get_db
    main.app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(name="Asha Verma", password="secret123", verified=True, premium=False, email=None, phone=None):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            full_name=name,
            email=email or f"user{n}@example.com",
            phone=phone or f"90000000{n:02d}",
            password_hash=hash_password(password),
            is_verified=verified,
            is_premium=premium,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_lawyer(db_session):
    counter = {"n": 0}

    def _make(name="Adv. Rohan Mehta", password="secret123", verified=True, approved=True):
        counter["n"] += 1
        n = counter["n"]
        lawyer = Lawyer(
            full_name=name,
            email=f"lawyer{n}@example.com",
            phone=f"80000000{n:02d}",
            password_hash=hash_password(password),
            bar_council_number=f"MAH/{1000 + n}/2015",
            aadhaar_number=f"1234567890{n:02d}",
            specialization=["Family Law"],
            is_verified=verified,
            is_approved=approved,
            account_status="active" if approved else "pending",
        )
        db_session.add(lawyer)
        db_session.commit()
        db_session.refresh(lawyer)
        return lawyer

    return _make


@pytest.fixture
def admin(db_session):
    admin = Admin(username="root", password_hash=hash_password("rootpass"))
    db_session.add(admin)
    db_session.commit()
    db_session.refresh(admin)
    return admin


def auth_header(principal_id, role):
    return {"Authorization": f"Bearer {create_access_token(principal_id, role)}"}
