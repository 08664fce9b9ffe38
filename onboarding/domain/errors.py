class OnboardingError(Exception):
    """Базовая ошибка: стабильный kind + сообщение для клиента."""
    kind = "onboarding_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OnboardingError):
    kind = "validation_error"


class ConflictError(OnboardingError):
    kind = "conflict"


class NotFoundError(OnboardingError):
    kind = "not_found"


class NoCounselorAvailable(NotFoundError):
    kind = "no_counselor_available"

    def __init__(self, message: str = "There are no counselors yet"):
        super().__init__(message)


class AuthError(OnboardingError):
    kind = "auth_error"


class ExternalServiceError(OnboardingError):
    kind = "external_service_error"

    def __init__(self, message: str, status_code: int | None = None, student=None):
        super().__init__(message)
        self.status_code = status_code
        # студент уже сохранён, если ошибка случилась после записи
        self.student = student


class PartialRegistrationError(OnboardingError):
    """Студент сохранён, но привязка к куратору не записана."""
    kind = "partial_registration"

    def __init__(self, message: str, student):
        super().__init__(message)
        self.student = student
