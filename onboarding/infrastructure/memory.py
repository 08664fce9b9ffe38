"""Хранилище в памяти процесса: для тестов и локального запуска без БД.

Каждый вызов уступает управление циклу событий, как настоящий ввод-вывод.
Записи отдаются копиями, поэтому конкурентные сценарии ведут себя так же,
как с внешним хранилищем.
"""
import asyncio
import copy
from collections import defaultdict

from .models import new_id
from ..application.ports import ICounselorRepository, IStudentRepository
from ..domain.entities import Counselor, Student
from ..domain.errors import ConflictError, NotFoundError


class InMemoryStudentRepository(IStudentRepository):
    def __init__(self):
        self.rows: dict[str, Student] = {}

    async def _first(self, predicate) -> Student | None:
        await asyncio.sleep(0)
        for s in self.rows.values():
            if predicate(s):
                return copy.copy(s)
        return None

    async def find_by_id(self, student_id: str) -> Student | None:
        return await self._first(lambda s: s.id == student_id)

    async def find_by_email(self, email: str) -> Student | None:
        return await self._first(lambda s: s.email == email)

    async def find_by_phone_number(self, phone_number: str) -> Student | None:
        return await self._first(lambda s: s.phone_number == phone_number)

    async def exists_by_id(self, student_id: str) -> bool:
        await asyncio.sleep(0)
        return student_id in self.rows

    async def list_all(self) -> list[Student]:
        await asyncio.sleep(0)
        return [copy.copy(s) for s in self.rows.values()]

    async def save(self, student: Student) -> Student:
        await asyncio.sleep(0)
        for other in self.rows.values():
            if other.id != student.id and (
                other.email == student.email or other.phone_number == student.phone_number
            ):
                raise ConflictError("email or phone number already exists")
        stored = copy.copy(student)
        stored.id = stored.id or new_id()
        stored.token = None
        self.rows[stored.id] = stored
        return copy.copy(stored)


class InMemoryCounselorRepository(ICounselorRepository):
    def __init__(self, counselors: list[Counselor] | None = None):
        # dict сохраняет порядок добавления: это и есть порядок перечисления
        self.rows: dict[str, Counselor] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        for c in counselors or []:
            self.rows[c.id] = self._copy(c)

    @staticmethod
    def _copy(c: Counselor) -> Counselor:
        return Counselor(id=c.id, role=c.role, mentee_ids=set(c.mentee_ids))

    async def get(self, counselor_id: str) -> Counselor | None:
        await asyncio.sleep(0)
        row = self.rows.get(counselor_id)
        return self._copy(row) if row else None

    async def aggregate_by_role(self, role: str) -> list[Counselor]:
        await asyncio.sleep(0)
        found = [self._copy(c) for c in self.rows.values() if c.role == role]
        return sorted(found, key=lambda c: c.load, reverse=True)

    async def save(self, counselor: Counselor) -> Counselor:
        # перезаписывает снимок целиком: при чтении-изменении-записи
        # из нескольких задач последняя запись затирает остальные
        await asyncio.sleep(0)
        self.rows[counselor.id] = self._copy(counselor)
        return self._copy(counselor)

    async def add_mentee(self, counselor_id: str, student_id: str) -> Counselor:
        async with self._locks[counselor_id]:
            await asyncio.sleep(0)
            row = self.rows.get(counselor_id)
            if row is None:
                raise NotFoundError("Counselor not found")
            for other in self.rows.values():
                if other.id != counselor_id and student_id in other.mentee_ids:
                    raise ConflictError("Student already has a counselor")
            row.add_mentee(student_id)
            return self._copy(row)
