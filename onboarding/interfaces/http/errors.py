from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ...domain.errors import (
    AuthError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    OnboardingError,
    PartialRegistrationError,
    ValidationError,
)

STATUS_BY_ERROR = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AuthError: status.HTTP_401_UNAUTHORIZED,
    ExternalServiceError: status.HTTP_502_BAD_GATEWAY,
    PartialRegistrationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

def status_for(error: OnboardingError) -> int:
    for cls in type(error).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return status.HTTP_400_BAD_REQUEST

async def onboarding_error_handler(request: Request, exc: OnboardingError):
    body = {"kind": exc.kind, "detail": exc.message}
    # студент уже сохранён: клиенту нужен его id
    student = getattr(exc, "student", None)
    if student is not None:
        body["student_id"] = student.id
    return JSONResponse(status_code=status_for(exc), content=body)

async def request_validation_handler(request: Request, exc: RequestValidationError):
    # тело не прошло схему (формат email, типы полей): тот же формат {kind, detail}
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "kind": ValidationError.kind,
            "detail": f"{field}: {message}" if field else message,
            "errors": jsonable_encoder(errors),
        },
    )

def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OnboardingError, onboarding_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
