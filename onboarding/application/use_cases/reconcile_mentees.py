import structlog

from ..ports import ICounselorRepository, IStudentRepository
from ...domain.entities import COUNSELOR_ROLE
from ...domain.errors import OnboardingError

logger = structlog.get_logger()


class ReconcileMentees:
    """Дописывает куратору студентов, у которых ссылка на него уже есть,
    а в списке подопечных их нет (сбой между двумя записями регистрации)."""

    def __init__(self, students: IStudentRepository, counselors: ICounselorRepository):
        self.students = students
        self.counselors = counselors

    async def execute(self) -> int:
        counselors = {c.id: c for c in await self.counselors.aggregate_by_role(COUNSELOR_ROLE)}
        repaired = 0
        for student in await self.students.list_all():
            counselor = counselors.get(student.counselor_id)
            if counselor is None:
                if student.counselor_id is not None:
                    logger.warning("unknown_counselor", student_id=student.id, counselor_id=student.counselor_id)
                continue
            if student.id in counselor.mentee_ids:
                continue
            try:
                await self.counselors.add_mentee(counselor.id, student.id)
            except OnboardingError as e:
                # студент уже числится у другого куратора: чиним вручную, остальных не блокируем
                logger.warning(
                    "mentee_link_conflict",
                    student_id=student.id,
                    counselor_id=counselor.id,
                    error=e.message,
                )
                continue
            counselor.add_mentee(student.id)
            repaired += 1
            logger.info("mentee_link_repaired", student_id=student.id, counselor_id=counselor.id)
        return repaired
