import asyncio
from datetime import timedelta

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from slowapi import Limiter
from sqlalchemy.ext.asyncio import AsyncSession

from ....application.dto import LoginStudentInput, RegisterStudentInput
from ....application.ports import ICounselorRepository, IIdentityProvisioner, IStudentRepository
from ....application.use_cases.login_student import LoginStudent
from ....application.use_cases.register_student import RegisterStudent
from ....config import settings
from ....domain.entities import Student
from ....domain.errors import AuthError, OnboardingError
from ....infrastructure.db import get_db
from ....infrastructure.metrics import logins_total, registrations_total
from ....infrastructure.repositories import CounselorRepository, StudentRepository
from ....infrastructure.security import CredentialIssuer, PasswordHasher
from ..schemas import ExistsResp, LoginReq, RegisterReq, StudentResp

router = APIRouter(prefix="/api/students", tags=["students"])
bearer = HTTPBearer()

def get_limiter(request: Request) -> Limiter:
    return request.app.state.limiter

def get_students(db: AsyncSession = Depends(get_db)) -> IStudentRepository:
    return StudentRepository(db)

def get_counselors(db: AsyncSession = Depends(get_db)) -> ICounselorRepository:
    return CounselorRepository(db)

def get_provisioner(request: Request) -> IIdentityProvisioner:
    return request.app.state.provisioner

def get_issuer(students: IStudentRepository = Depends(get_students)) -> CredentialIssuer:
    return CredentialIssuer(
        students,
        secret=settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        ttl=timedelta(days=settings.TOKEN_TTL_DAYS),
        timeout=settings.STORAGE_TIMEOUT_SECONDS,
    )

def to_resp(student: Student, with_token: bool = True) -> StudentResp:
    return StudentResp(
        id=student.id,
        email=student.email,
        phone_number=student.phone_number,
        first_name=student.first_name,
        last_name=student.last_name,
        counselor_id=student.counselor_id,
        color=student.color.value if student.color else None,
        created_at=student.created_at,
        token=student.token if with_token else None,
    )

@router.get("/health")
def health():
    return {"status": "ok"}

async def _register_impl(
    request: Request,
    payload: RegisterReq,
    students: IStudentRepository,
    counselors: ICounselorRepository,
    issuer: CredentialIssuer,
    provisioner: IIdentityProvisioner,
):
    uc = RegisterStudent(
        students=students,
        counselors=counselors,
        hasher=PasswordHasher(),
        issuer=issuer,
        provisioner=provisioner,
        country_code=settings.PHONE_COUNTRY_CODE,
        timeout=settings.STORAGE_TIMEOUT_SECONDS,
    )
    try:
        student = await uc.execute(RegisterStudentInput(**payload.model_dump()))
    except OnboardingError as e:
        registrations_total.labels(outcome=e.kind).inc()
        raise
    registrations_total.labels(outcome="ok").inc()
    return to_resp(student)

@router.post("/register", response_model=StudentResp, status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    payload: RegisterReq,
    students: IStudentRepository = Depends(get_students),
    counselors: ICounselorRepository = Depends(get_counselors),
    issuer: CredentialIssuer = Depends(get_issuer),
    provisioner: IIdentityProvisioner = Depends(get_provisioner),
    limiter: Limiter = Depends(get_limiter),
):
    limited_func = limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")(_register_impl)
    return await limited_func(request, payload, students, counselors, issuer, provisioner)

async def _login_impl(
    request: Request,
    payload: LoginReq,
    students: IStudentRepository,
    issuer: CredentialIssuer,
):
    uc = LoginStudent(
        students=students,
        hasher=PasswordHasher(),
        issuer=issuer,
        country_code=settings.PHONE_COUNTRY_CODE,
        timeout=settings.STORAGE_TIMEOUT_SECONDS,
    )
    try:
        student = await uc.execute(LoginStudentInput(**payload.model_dump()))
    except OnboardingError as e:
        logins_total.labels(outcome=e.kind).inc()
        raise
    logins_total.labels(outcome="ok").inc()
    return to_resp(student)

@router.post("/login", response_model=StudentResp)
async def login(
    request: Request,
    payload: LoginReq,
    students: IStudentRepository = Depends(get_students),
    issuer: CredentialIssuer = Depends(get_issuer),
    limiter: Limiter = Depends(get_limiter),
):
    # Более строгий лимит для логина (защита от брутфорса)
    limited_func = limiter.limit("10/minute")(_login_impl)
    return await limited_func(request, payload, students, issuer)

@router.get("/me", response_model=StudentResp)
async def me(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    students: IStudentRepository = Depends(get_students),
    issuer: CredentialIssuer = Depends(get_issuer),
):
    student_id = issuer.decode(creds.credentials)
    student = await asyncio.wait_for(students.find_by_id(student_id), timeout=settings.STORAGE_TIMEOUT_SECONDS)
    if student is None:
        raise AuthError("Student not found")
    return to_resp(student, with_token=False)

@router.get("/{student_id}/exists", response_model=ExistsResp)
async def exists(student_id: str, students: IStudentRepository = Depends(get_students)):
    return ExistsResp(exists=await students.exists_by_id(student_id))
