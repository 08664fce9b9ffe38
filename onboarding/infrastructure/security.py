import asyncio
from datetime import datetime, timedelta, timezone

from jose import jwt, JWTError
from passlib.context import CryptContext

from ..application.ports import IStudentRepository
from ..domain.errors import AuthError, NotFoundError

pwd = CryptContext(
    schemes=["bcrypt_sha256"],
    deprecated="auto",
    bcrypt_sha256__truncate_error=False,
)

class PasswordHasher:
    def hash(self, plain: str) -> str: return pwd.hash(plain)
    def verify(self, plain: str, hashed: str) -> bool: return pwd.verify(plain, hashed)


class CredentialIssuer:
    """Подписывает токен с sub=<id студента>.

    Срок жизни задаётся явно (по умолчанию 1000 дней, TOKEN_TTL_DAYS).
    """

    def __init__(
        self,
        students: IStudentRepository,
        secret: str,
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(days=1000),
        timeout: float = 5.0,
    ):
        self.students = students
        self.secret = secret
        self.algorithm = algorithm
        self.ttl = ttl
        self.timeout = timeout

    async def issue(self, subject_id: str) -> str:
        # не подписываем токены для несуществующих студентов
        exists = await asyncio.wait_for(self.students.exists_by_id(subject_id), timeout=self.timeout)
        if not exists:
            raise NotFoundError("Student doesn't exist")
        now = datetime.now(timezone.utc)
        payload = {"sub": subject_id, "iat": now, "exp": now + self.ttl}
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> str:
        """Возвращает id студента (sub) из токена или кидает AuthError."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            raise AuthError("Invalid token")
        sub = payload.get("sub")
        if not sub:
            raise AuthError("Invalid token")
        return sub
