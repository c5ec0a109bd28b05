import logging
from typing import Any, Optional

import httpx
from supabase import Client, FunctionsHttpError, FunctionsRelayError, create_client
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from medmarket.settings import settings

logger = logging.getLogger(__name__)


class NotificationService:
    """
    이메일 알림 발송 (Supabase Edge Function).
    fire-and-forget: 실패는 로그만 남기고 호출한 쪽으로 전파하지 않습니다.
    """

    def __init__(self, client: Optional[Client] = None):
        self.function_name = settings.notification_function_name
        self.client = client

        if self.client is None and settings.notifications_enabled:
            if not settings.supabase_service_role_key:
                logger.warning("Supabase credentials not set. Notification service disabled.")
            else:
                try:
                    self.client = create_client(settings.supabase_url, settings.supabase_service_role_key)
                except Exception as e:
                    logger.error(f"Failed to initialize Supabase client: {e}")
                    self.client = None

    @retry(
        stop=stop_after_attempt(settings.notification_retry_count),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((TimeoutError, ConnectionError, RuntimeError)),
        reraise=True,
        # 전송 오류, relay 오류, 429/5xx는 ConnectionError/RuntimeError로 래핑되어 올라옴
        before_sleep=lambda retry_state: logger.warning(
            f"[NOTIFY] 재시도 중... ({retry_state.attempt_number}회째): {retry_state.outcome.exception()}"
        ),
    )
    def _invoke(self, payload: dict[str, Any]) -> Any:
        try:
            return self.client.functions.invoke(self.function_name, invoke_options={"body": payload})
        except httpx.TimeoutException as e:
            raise TimeoutError(f"Edge function timeout: {e}") from e
        except httpx.TransportError as e:
            raise ConnectionError(f"Edge function unreachable: {e}") from e
        except FunctionsRelayError as e:
            raise RuntimeError(f"Edge function relay error: {e.message}") from e
        except FunctionsHttpError as e:
            if e.status == 429 or e.status >= 500:
                raise RuntimeError(f"Edge function HTTP {e.status}: {e.message}") from e
            raise

    def send(self, recipient: str | None, template: str, fields: dict[str, Any]) -> bool:
        if not recipient:
            logger.warning(f"[NOTIFY] No recipient for template={template}, skipped")
            return False
        if not self.client:
            logger.info(f"[NOTIFY] Disabled, dropping template={template} to {recipient}")
            return False

        payload = {"to": recipient, "template": template, "fields": fields}
        try:
            self._invoke(payload)
        except Exception as e:
            logger.error(f"[NOTIFY] Dispatch failed template={template} to={recipient}: {e}")
            return False

        logger.info(f"[NOTIFY] Sent template={template} to={recipient}")
        return True

    def order_placed(self, pharmacy_email: str | None, order_id: str, total_amount: str) -> bool:
        return self.send(pharmacy_email, "order_placed", {"order_id": order_id, "total_amount": total_amount})

    def pharmacy_verification(self, pharmacy_email: str | None, pharmacy_name: str, status: str) -> bool:
        return self.send(pharmacy_email, "pharmacy_verification", {"pharmacy_name": pharmacy_name, "status": status})

    def delivery_completed(self, customer_email: str | None, order_id: str) -> bool:
        return self.send(customer_email, "delivery_completed", {"order_id": order_id})


_notifier: Optional[NotificationService] = None


def get_notifier() -> NotificationService:
    global _notifier
    if _notifier is None:
        _notifier = NotificationService()
    return _notifier
