import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

COUNSELOR_ROLE = "counselor"


class Color(str, Enum):
    RED = "RED"
    BLUE = "BLUE"
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    ORANGE = "ORANGE"
    PURPLE = "PURPLE"
    PINK = "PINK"
    TEAL = "TEAL"

    @classmethod
    def random(cls, rng: random.Random | None = None) -> "Color":
        return (rng or random).choice(list(cls))


@dataclass
class Student:
    email: str
    phone_number: str
    first_name: str
    last_name: str
    password: str
    id: str | None = None
    created_at: datetime | None = None
    counselor_id: str | None = None
    color: Color | None = None
    # выдаётся на каждый логин/регистрацию, в БД не хранится
    token: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class Counselor:
    id: str
    role: str = COUNSELOR_ROLE
    mentee_ids: set[str] = field(default_factory=set)

    @property
    def load(self) -> int:
        return len(self.mentee_ids)

    def add_mentee(self, student_id: str) -> None:
        self.mentee_ids.add(student_id)


@dataclass(frozen=True)
class ExternalIdentity:
    """Запись пользователя во внешнем сервисе чата/видео."""
    id: str
    name: str
    color: Color
    image: str | None = None
    role: str = "user"

    @classmethod
    def from_student(cls, student: Student) -> "ExternalIdentity":
        return cls(id=student.id, name=student.full_name, color=student.color)

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "image": self.image,
            "role": self.role.lower(),
            "custom": {"color": self.color.name.lower()},
        }
