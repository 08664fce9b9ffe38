from datetime import datetime

from pydantic import BaseModel, EmailStr

# Обязательность полей проверяет сценарий регистрации, чтобы сообщения
# об ошибках были одинаковыми для HTTP и для прямых вызовов
class RegisterReq(BaseModel):
    email: EmailStr | None = None
    phone_number: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    password: str | None = None

class LoginReq(BaseModel):
    email: EmailStr | None = None
    phone_number: str | None = None
    password: str | None = None

class StudentResp(BaseModel):
    id: str
    email: EmailStr
    phone_number: str
    first_name: str
    last_name: str
    counselor_id: str | None = None
    color: str | None = None
    created_at: datetime | None = None
    token: str | None = None
    class Config: from_attributes = True

class ExistsResp(BaseModel):
    exists: bool

class ErrorResp(BaseModel):
    kind: str
    detail: str
    student_id: str | None = None
