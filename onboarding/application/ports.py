from ..domain.entities import Counselor, ExternalIdentity, Student


class IStudentRepository:
    async def find_by_id(self, student_id: str) -> Student | None: ...
    async def find_by_email(self, email: str) -> Student | None: ...
    async def find_by_phone_number(self, phone_number: str) -> Student | None: ...
    async def exists_by_id(self, student_id: str) -> bool: ...
    async def save(self, student: Student) -> Student: ...
    async def list_all(self) -> list[Student]: ...


class ICounselorRepository:
    async def get(self, counselor_id: str) -> Counselor | None: ...
    async def aggregate_by_role(self, role: str) -> list[Counselor]: ...
    async def save(self, counselor: Counselor) -> Counselor: ...
    async def add_mentee(self, counselor_id: str, student_id: str) -> Counselor: ...


class IPasswordHasher:
    def hash(self, plain: str) -> str: ...
    def verify(self, plain: str, hashed: str) -> bool: ...


class ICredentialIssuer:
    async def issue(self, subject_id: str) -> str: ...


class IIdentityProvisioner:
    async def provision(self, identity: ExternalIdentity) -> None: ...
