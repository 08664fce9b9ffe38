from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AdminORM, CounselorMenteeORM, StudentORM, new_id, utcnow
from ..application.ports import ICounselorRepository, IStudentRepository
from ..domain.entities import Color, Counselor, Student
from ..domain.errors import ConflictError, NotFoundError

def to_domain(s: StudentORM) -> Student:
    return Student(
        id=s.id,
        email=s.email,
        phone_number=s.phone_number,
        first_name=s.first_name,
        last_name=s.last_name,
        password=s.password_hash,
        created_at=s.created_at,
        counselor_id=s.counselor_id,
        color=Color(s.color) if s.color else None,
    )


class StudentRepository(IStudentRepository):
    def __init__(self, db: AsyncSession): self.db = db

    async def _one(self, *criteria) -> Student | None:
        row = (await self.db.execute(select(StudentORM).where(*criteria))).scalar_one_or_none()
        return to_domain(row) if row else None

    async def find_by_id(self, student_id: str) -> Student | None:
        return await self._one(StudentORM.id == student_id)

    async def find_by_email(self, email: str) -> Student | None:
        return await self._one(StudentORM.email == email)

    async def find_by_phone_number(self, phone_number: str) -> Student | None:
        return await self._one(StudentORM.phone_number == phone_number)

    async def exists_by_id(self, student_id: str) -> bool:
        q = select(func.count()).select_from(StudentORM).where(StudentORM.id == student_id)
        return (await self.db.execute(q)).scalar_one() > 0

    async def list_all(self) -> list[Student]:
        rows = (await self.db.execute(select(StudentORM).order_by(StudentORM.created_at))).scalars().all()
        return [to_domain(r) for r in rows]

    async def save(self, student: Student) -> Student:
        row = await self.db.get(StudentORM, student.id) if student.id else None
        if row is None:
            # цвет, куратор, хеш и дата проставляются только при создании
            row = StudentORM(
                id=student.id or new_id(),
                password_hash=student.password,
                created_at=student.created_at or utcnow(),
                color=student.color.value if student.color else None,
                counselor_id=student.counselor_id,
            )
            self.db.add(row)
        row.email = student.email
        row.phone_number = student.phone_number
        row.first_name = student.first_name
        row.last_name = student.last_name
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("email or phone number already exists")
        await self.db.refresh(row)
        return to_domain(row)


class CounselorRepository(ICounselorRepository):
    def __init__(self, db: AsyncSession): self.db = db

    async def _mentee_ids(self, counselor_ids: list[str]) -> dict[str, set[str]]:
        result: dict[str, set[str]] = {cid: set() for cid in counselor_ids}
        if not counselor_ids:
            return result
        q = select(CounselorMenteeORM).where(CounselorMenteeORM.counselor_id.in_(counselor_ids))
        for link in (await self.db.execute(q)).scalars():
            result[link.counselor_id].add(link.student_id)
        return result

    async def get(self, counselor_id: str) -> Counselor | None:
        row = await self.db.get(AdminORM, counselor_id)
        if row is None:
            return None
        mentees = await self._mentee_ids([row.id])
        return Counselor(id=row.id, role=row.role, mentee_ids=mentees[row.id])

    async def aggregate_by_role(self, role: str) -> list[Counselor]:
        mentees_count = func.count(CounselorMenteeORM.student_id).label("mentees_count")
        # более загруженные сверху
        q = (select(AdminORM, mentees_count)
             .outerjoin(CounselorMenteeORM, CounselorMenteeORM.counselor_id == AdminORM.id)
             .where(AdminORM.role == role)
             .group_by(AdminORM.id)
             .order_by(mentees_count.desc(), AdminORM.created_at, AdminORM.id))
        rows = (await self.db.execute(q)).all()
        mentees = await self._mentee_ids([r[0].id for r in rows])
        return [Counselor(id=r[0].id, role=r[0].role, mentee_ids=mentees[r[0].id]) for r in rows]

    async def save(self, counselor: Counselor) -> Counselor:
        row = await self.db.get(AdminORM, counselor.id)
        if row is None:
            row = AdminORM(id=counselor.id, role=counselor.role)
            self.db.add(row)
        row.role = counselor.role
        existing = (await self._mentee_ids([counselor.id]))[counselor.id]
        for student_id in counselor.mentee_ids - existing:
            self.db.add(CounselorMenteeORM(counselor_id=counselor.id, student_id=student_id))
        await self.db.commit()
        return await self.get(counselor.id)

    async def add_mentee(self, counselor_id: str, student_id: str) -> Counselor:
        if await self.db.get(AdminORM, counselor_id) is None:
            raise NotFoundError("Counselor not found")
        # один INSERT вместо чтения-изменения-записи списка подопечных
        self.db.add(CounselorMenteeORM(counselor_id=counselor_id, student_id=student_id))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            current = await self.db.execute(
                select(CounselorMenteeORM.counselor_id).where(CounselorMenteeORM.student_id == student_id)
            )
            if current.scalar_one_or_none() != counselor_id:
                raise ConflictError("Student already has a counselor")
        return await self.get(counselor_id)
