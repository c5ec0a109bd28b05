from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./medmarket.db"

    # Identity provider + edge functions (Supabase)
    supabase_url: str = "https://localhost.supabase.co"
    supabase_service_role_key: str = ""

    auth_dev_header_enabled: bool = False  # X-Principal-Id 헤더 신뢰 (개발/테스트 전용)
    auth_hook_secret: str = ""  # 신규 가입 웹훅 공유 시크릿

    notifications_enabled: bool = True
    notification_function_name: str = "send-notification"
    notification_retry_count: int = 3  # tenacity 재시도 횟수

    # 승인되지 않은 약국의 상품 관리 차단
    pharmacy_requires_approval_for_catalog: bool = True

    order_list_limit: int = 100

    @field_validator("database_url")
    @classmethod
    def validate_db_url(cls, v: str) -> str:
        if not v.startswith(("postgresql", "sqlite")):
            raise ValueError("DB URL은 'postgresql' 또는 'sqlite'로 시작해야 합니다.")
        return v

    @field_validator("supabase_url")
    @classmethod
    def validate_http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL은 'http://' 또는 'https://'로 시작해야 합니다.")
        return v

    @field_validator("notification_retry_count")
    @classmethod
    def validate_retry_count(cls, v: int) -> int:
        if not 1 <= v <= 10:
            raise ValueError("notification_retry_count는 1에서 10 사이여야 합니다.")
        return v

    @field_validator("order_list_limit")
    @classmethod
    def validate_list_limit(cls, v: int) -> int:
        if not 1 <= v <= 1000:
            raise ValueError("order_list_limit는 1에서 1000 사이여야 합니다.")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=False)


settings = Settings()
