"""Регистрация студента: проверка уникальности, выбор куратора,
сохранение, выдача токена и создание пользователя во внешнем чате.

Шаги до сохранения студента не имеют побочных эффектов и могут быть
отменены. После первой записи оставшиеся шаги выполняются под
asyncio.shield: либо доходят до конца, либо поднимают ошибку, в которой
лежит уже сохранённый студент (commit-then-notify, отката нет).
"""
import asyncio
import random
from datetime import datetime, timezone
from typing import Callable

import structlog

from ..dto import RegisterStudentInput
from ..ports import (
    ICounselorRepository,
    ICredentialIssuer,
    IIdentityProvisioner,
    IPasswordHasher,
    IStudentRepository,
)
from .assign_counselor import select_least_loaded
from ...domain.entities import COUNSELOR_ROLE, Color, Counselor, ExternalIdentity, Student
from ...domain.errors import (
    ConflictError,
    ExternalServiceError,
    PartialRegistrationError,
    ValidationError,
)
from ...domain.phone import normalize_phone

logger = structlog.get_logger()

_REQUIRED = (
    ("email", "Email"),
    ("phone_number", "Phone Number"),
    ("first_name", "First Name"),
    ("last_name", "Last Name"),
    ("password", "Password"),
)


class RegisterStudent:
    def __init__(
        self,
        students: IStudentRepository,
        counselors: ICounselorRepository,
        hasher: IPasswordHasher,
        issuer: ICredentialIssuer,
        provisioner: IIdentityProvisioner,
        country_code: str = "234",
        timeout: float = 5.0,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.students = students
        self.counselors = counselors
        self.hasher = hasher
        self.issuer = issuer
        self.provisioner = provisioner
        self.country_code = country_code
        self.timeout = timeout
        self.rng = rng
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        # задачи после первой записи; держим ссылки, пока они не завершатся
        self._pending: set[asyncio.Task] = set()

    async def _io(self, awaitable):
        return await asyncio.wait_for(awaitable, timeout=self.timeout)

    async def execute(self, data: RegisterStudentInput) -> Student:
        for attr, label in _REQUIRED:
            if getattr(data, attr) is None:
                raise ValidationError(f"{label} cannot be null")

        phone_number = normalize_phone(data.phone_number, self.country_code)

        if await self._io(self.students.find_by_email(data.email)):
            raise ConflictError("email already exists")
        if await self._io(self.students.find_by_phone_number(phone_number)):
            raise ConflictError("phone number already exists")

        counselor = select_least_loaded(
            await self._io(self.counselors.aggregate_by_role(COUNSELOR_ROLE))
        )
        password_hash = await asyncio.to_thread(self.hasher.hash, data.password)

        student = Student(
            id=None,
            email=data.email,
            phone_number=phone_number,
            first_name=data.first_name,
            last_name=data.last_name,
            password=password_hash,
            created_at=self.clock(),
            color=Color.random(self.rng),
            counselor_id=counselor.id,
        )
        task = asyncio.ensure_future(self._commit(student, counselor))
        self._pending.add(task)
        task.add_done_callback(self._on_commit_done)
        return await asyncio.shield(task)

    def _on_commit_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        student = getattr(error, "student", None)
        if student is None:
            # до первой записи ничего не сохранено
            logger.warning("registration_failed", error=str(error), error_type=type(error).__name__)
            return
        logger.error(
            "registration_incomplete",
            student_id=student.id,
            error=str(error),
            error_type=type(error).__name__,
        )

    async def _commit(self, student: Student, counselor: Counselor) -> Student:
        saved = await self._io(self.students.save(student))
        log = logger.bind(student_id=saved.id, counselor_id=counselor.id)
        log.info("student_saved")

        try:
            await self._io(self.counselors.add_mentee(counselor.id, saved.id))
        except Exception as e:
            log.error("counselor_link_failed", error=str(e))
            raise PartialRegistrationError(
                "Student was saved but could not be linked to the counselor", saved
            ) from e

        try:
            saved.token = await self.issuer.issue(saved.id)
        except Exception as e:
            log.error("token_issue_failed", error=str(e))
            raise PartialRegistrationError("Student was saved but no token could be issued", saved) from e

        try:
            await self.provisioner.provision(ExternalIdentity.from_student(saved))
        except ExternalServiceError as e:
            log.error("external_identity_failed", error=e.message, status_code=e.status_code)
            e.student = saved
            raise

        log.info("student_registered")
        return saved
