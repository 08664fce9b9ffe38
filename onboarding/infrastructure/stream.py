"""Создание/обновление пользователя во внешнем сервисе чата и видео (Stream).

Запрос: POST {base_url}/users?api_key=... с телом {"users": {"<id>": {...}}}.
Любой ответ не 2xx считается ошибкой. Сетевые ошибки, таймауты, 429 и 5xx
повторяются ограниченное число раз с экспоненциальной паузой; остальные
4xx не повторяются.
"""
import asyncio

import httpx
import structlog

from ..config import Settings
from ..domain.entities import ExternalIdentity
from ..domain.errors import ExternalServiceError

logger = structlog.get_logger()


def _is_retryable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class StreamIdentityProvisioner:
    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None, sleep=asyncio.sleep):
        self.api_key = settings.STREAM_API_KEY
        self.api_token = settings.STREAM_API_TOKEN
        self.max_attempts = max(1, settings.STREAM_MAX_ATTEMPTS)
        self.backoff = settings.STREAM_BACKOFF_SECONDS
        self._sleep = sleep
        self._client = client or httpx.AsyncClient(
            base_url=settings.STREAM_BASE_URL,
            timeout=settings.STREAM_TIMEOUT_SECONDS,
        )

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "stream-auth-type": "jwt",
            "Authorization": self.api_token,
        }

    async def provision(self, identity: ExternalIdentity) -> None:
        body = {"users": {identity.id: identity.to_payload()}}
        last_error: ExternalServiceError | None = None

        for attempt in range(self.max_attempts):
            if attempt:
                await self._sleep(self.backoff * 2 ** (attempt - 1))
            try:
                response = await self._client.post(
                    "/users",
                    params={"api_key": self.api_key},
                    headers=self._headers(),
                    json=body,
                )
            except httpx.HTTPError as e:
                last_error = ExternalServiceError(f"External identity service unreachable: {e}")
                logger.warning("stream_request_failed", user_id=identity.id, attempt=attempt + 1, error=str(e))
                continue

            if response.is_success:
                logger.info("stream_user_upserted", user_id=identity.id, attempt=attempt + 1)
                return

            last_error = ExternalServiceError(
                f"External identity service returned {response.status_code}",
                status_code=response.status_code,
            )
            logger.warning(
                "stream_request_rejected",
                user_id=identity.id,
                attempt=attempt + 1,
                status_code=response.status_code,
            )
            if not _is_retryable(response.status_code):
                break

        raise last_error
