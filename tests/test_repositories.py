import asyncio

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from conftest import FakeHasher, RecordingProvisioner, TEST_SECRET, make_input
from onboarding.application.use_cases.reconcile_mentees import ReconcileMentees
from onboarding.application.use_cases.register_student import RegisterStudent
from onboarding.domain.entities import COUNSELOR_ROLE, Color, Counselor, Student
from onboarding.domain.errors import ConflictError, NotFoundError
from onboarding.infrastructure.models import Base
from onboarding.infrastructure.repositories import CounselorRepository, StudentRepository
from onboarding.infrastructure.security import CredentialIssuer


@pytest_asyncio.fixture
async def sessionmaker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(sessionmaker):
    async with sessionmaker() as session:
        yield session


def new_student(email="a@x.com", phone="+2348012345678", counselor_id=None) -> Student:
    return Student(
        email=email,
        phone_number=phone,
        first_name="A",
        last_name="B",
        password="hashed:p",
        color=Color.BLUE,
        counselor_id=counselor_id,
    )


@pytest.mark.asyncio
async def test_student_save_and_lookups(db):
    repo = StudentRepository(db)
    saved = await repo.save(new_student())

    assert saved.id
    assert saved.created_at is not None
    assert saved.color == Color.BLUE
    assert (await repo.find_by_id(saved.id)).email == "a@x.com"
    assert (await repo.find_by_email("a@x.com")).id == saved.id
    assert (await repo.find_by_phone_number("+2348012345678")).id == saved.id
    assert await repo.exists_by_id(saved.id)
    assert not await repo.exists_by_id("missing")
    assert await repo.find_by_email("other@x.com") is None


@pytest.mark.asyncio
async def test_student_unique_email_enforced(db):
    repo = StudentRepository(db)
    await repo.save(new_student())
    with pytest.raises(ConflictError):
        await repo.save(new_student(phone="+2348099999999"))


@pytest.mark.asyncio
async def test_student_update_keeps_color_and_counselor(db):
    repo = StudentRepository(db)
    saved = await repo.save(new_student(counselor_id="c1"))

    saved.first_name = "Changed"
    saved.color = Color.RED
    saved.counselor_id = "c2"
    updated = await repo.save(saved)

    assert updated.first_name == "Changed"
    assert updated.color == Color.BLUE
    assert updated.counselor_id == "c1"


@pytest.mark.asyncio
async def test_aggregate_by_role_orders_by_load(db):
    repo = CounselorRepository(db)
    await repo.save(Counselor(id="idle"))
    await repo.save(Counselor(id="busy", mentee_ids={"s1", "s2"}))
    await repo.save(Counselor(id="mid", mentee_ids={"s3"}))
    await repo.save(Counselor(id="boss", role="admin"))

    counselors = await repo.aggregate_by_role(COUNSELOR_ROLE)

    assert [c.id for c in counselors] == ["busy", "mid", "idle"]
    assert [c.load for c in counselors] == [2, 1, 0]
    assert counselors[0].mentee_ids == {"s1", "s2"}


@pytest.mark.asyncio
async def test_add_mentee(db):
    repo = CounselorRepository(db)
    await repo.save(Counselor(id="c1"))

    counselor = await repo.add_mentee("c1", "s1")
    assert counselor.mentee_ids == {"s1"}
    # повторное добавление того же студента идемпотентно
    assert (await repo.add_mentee("c1", "s1")).mentee_ids == {"s1"}


@pytest.mark.asyncio
async def test_add_mentee_unknown_counselor(db):
    with pytest.raises(NotFoundError):
        await CounselorRepository(db).add_mentee("nobody", "s1")


@pytest.mark.asyncio
async def test_student_cannot_have_two_counselors(db):
    repo = CounselorRepository(db)
    await repo.save(Counselor(id="c1"))
    await repo.save(Counselor(id="c2"))
    await repo.add_mentee("c1", "s1")

    with pytest.raises(ConflictError):
        await repo.add_mentee("c2", "s1")


@pytest.mark.asyncio
async def test_concurrent_add_mentee_from_separate_sessions(sessionmaker):
    """Параллельные добавления из разных сессий не теряются"""
    async with sessionmaker() as session:
        await CounselorRepository(session).save(Counselor(id="solo"))

    async def add(i):
        async with sessionmaker() as session:
            await CounselorRepository(session).add_mentee("solo", f"s{i}")

    await asyncio.gather(*[add(i) for i in range(10)])

    async with sessionmaker() as session:
        counselor = await CounselorRepository(session).get("solo")
    assert counselor.load == 10


@pytest.mark.asyncio
async def test_registration_against_database(db):
    students = StudentRepository(db)
    counselors = CounselorRepository(db)
    await counselors.save(Counselor(id="busy", mentee_ids={"x1", "x2"}))
    await counselors.save(Counselor(id="free"))
    provisioner = RecordingProvisioner()
    uc = RegisterStudent(
        students, counselors, FakeHasher(), CredentialIssuer(students, TEST_SECRET), provisioner
    )

    student = await uc.execute(make_input())

    assert student.counselor_id == "free"
    assert (await counselors.get("free")).mentee_ids == {student.id}
    stored = await students.find_by_id(student.id)
    assert stored.counselor_id == "free"
    assert stored.phone_number == "+2348012345678"


@pytest.mark.asyncio
async def test_reconcile_against_database(db):
    students = StudentRepository(db)
    counselors = CounselorRepository(db)
    await counselors.save(Counselor(id="c1"))
    orphan = await students.save(new_student(counselor_id="c1"))

    assert await ReconcileMentees(students, counselors).execute() == 1
    assert (await counselors.get("c1")).mentee_ids == {orphan.id}
