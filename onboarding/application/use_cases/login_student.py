import asyncio

import structlog

from ..dto import LoginStudentInput
from ..ports import ICredentialIssuer, IPasswordHasher, IStudentRepository
from ...domain.entities import Student
from ...domain.errors import AuthError, NotFoundError, ValidationError
from ...domain.phone import normalize_phone

logger = structlog.get_logger()


class LoginStudent:
    def __init__(
        self,
        students: IStudentRepository,
        hasher: IPasswordHasher,
        issuer: ICredentialIssuer,
        country_code: str = "234",
        timeout: float = 5.0,
    ):
        self.students = students
        self.hasher = hasher
        self.issuer = issuer
        self.country_code = country_code
        self.timeout = timeout

    async def execute(self, data: LoginStudentInput) -> Student:
        phone_number = None
        if data.phone_number is not None:
            phone_number = normalize_phone(data.phone_number, self.country_code)

        is_email_login = data.email is not None
        if not is_email_login and phone_number is None:
            raise ValidationError("Either Phone Number Or Email must be used")
        if data.password is None:
            raise ValidationError("Password cannot be null")

        lookup = (
            self.students.find_by_email(data.email)
            if is_email_login
            else self.students.find_by_phone_number(phone_number)
        )
        student = await asyncio.wait_for(lookup, timeout=self.timeout)
        if student is None:
            raise NotFoundError("Student not found")

        if not await asyncio.to_thread(self.hasher.verify, data.password, student.password):
            logger.info("login_rejected", student_id=student.id)
            raise AuthError("Wrong password")

        student.token = await self.issuer.issue(student.id)
        logger.info("student_logged_in", student_id=student.id, by="email" if is_email_login else "phone")
        return student
