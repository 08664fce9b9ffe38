from dataclasses import dataclass


@dataclass
class RegisterStudentInput:
    email: str | None
    phone_number: str | None
    first_name: str | None
    last_name: str | None
    password: str | None


@dataclass
class LoginStudentInput:
    password: str | None
    email: str | None = None
    phone_number: str | None = None
