import asyncio
import os
import sys
from datetime import timedelta

import pytest

CURRENT_DIR = os.path.dirname(__file__)
SERVICE_ROOT = os.path.dirname(CURRENT_DIR)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from onboarding.application.dto import RegisterStudentInput
from onboarding.application.use_cases.register_student import RegisterStudent
from onboarding.domain.entities import Counselor
from onboarding.infrastructure.memory import InMemoryCounselorRepository, InMemoryStudentRepository
from onboarding.infrastructure.security import CredentialIssuer

TEST_SECRET = "test-secret"


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Настройка тестового окружения"""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./test_onboarding.db")
    monkeypatch.setenv("SECRET_KEY", TEST_SECRET)
    monkeypatch.setenv("STREAM_API_KEY", "test-key")
    monkeypatch.setenv("STREAM_API_TOKEN", "test-token")


class FakeHasher:
    """Быстрый хешер для сценариев, где bcrypt не нужен"""
    def hash(self, plain: str) -> str: return f"hashed:{plain}"
    def verify(self, plain: str, hashed: str) -> bool: return hashed == f"hashed:{plain}"


class RecordingProvisioner:
    def __init__(self, error: Exception | None = None):
        self.calls = []
        self.error = error
        self.called = asyncio.Event()

    async def provision(self, identity) -> None:
        self.calls.append(identity)
        self.called.set()
        if self.error is not None:
            raise self.error


@pytest.fixture
def students():
    return InMemoryStudentRepository()


@pytest.fixture
def counselors():
    return InMemoryCounselorRepository([
        Counselor(id="busy", mentee_ids={"s1", "s2"}),
        Counselor(id="free"),
    ])


@pytest.fixture
def provisioner():
    return RecordingProvisioner()


@pytest.fixture
def issuer(students):
    return CredentialIssuer(students, secret=TEST_SECRET, ttl=timedelta(days=1000))


@pytest.fixture
def register(students, counselors, issuer, provisioner):
    return RegisterStudent(
        students=students,
        counselors=counselors,
        hasher=FakeHasher(),
        issuer=issuer,
        provisioner=provisioner,
    )


def make_input(email="a@x.com", phone_number="08012345678", **overrides) -> RegisterStudentInput:
    data = dict(
        email=email,
        phone_number=phone_number,
        first_name="A",
        last_name="B",
        password="p",
    )
    data.update(overrides)
    return RegisterStudentInput(**data)
