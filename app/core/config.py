from __future__ import annotations

import os
from functools import lru_cache
from dotenv import load_dotenv, find_dotenv

_env_path = find_dotenv(".env") or ".env"
load_dotenv(_env_path, override=False)


def _csv(raw: str) -> list[str]:
    return [o.strip().rstrip("/") for o in raw.split(",") if o.strip()]


class Settings:
    """Central configuration (env driven)."""

    def __init__(self) -> None:
        # Supabase
        raw_url = os.getenv("SUPABASE_URL", "")
        self.supabase_url: str = raw_url.rstrip("/")
        self.supabase_anon_key: str = os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY", "")
        self.supabase_service_role_key: str = (
            os.getenv("SUPABASE_SERVICE_ROLE_KEY")
            or os.getenv("SUPABASE_SERVICE_KEY")
            or ""
        )
        self.supabase_query_timeout_s: float = float(os.getenv("SUPABASE_QUERY_TIMEOUT", "5"))
        # Database (migrations only)
        self.database_url: str = os.getenv("DATABASE_URL", "")
        # PayPal
        self.paypal_client_id: str = os.getenv("PAYPAL_CLIENT_ID", "")
        self.paypal_secret_key: str = os.getenv("PAYPAL_SECRET_KEY", "")
        self.paypal_api_base: str = os.getenv("PAYPAL_API_BASE", "https://api-m.sandbox.paypal.com").rstrip("/")
        self.paypal_brand_name: str = os.getenv("PAYPAL_BRAND_NAME", "CCPQ Academy")
        self.paypal_locale: str = os.getenv("PAYPAL_LOCALE", "en-ZA")
        self.paypal_timeout_s: float = float(os.getenv("PAYPAL_TIMEOUT_S", "15"))
        self.paypal_max_retries: int = max(1, int(os.getenv("PAYPAL_MAX_RETRIES", "3")))
        self.payment_currency: str = os.getenv("PAYMENT_CURRENCY", "ZAR").upper()
        self.pending_order_ttl_minutes: int = int(os.getenv("PENDING_ORDER_TTL_MINUTES", "180"))
        self.site_url: str = os.getenv("SITE_URL", "https://ccpq.co.za").rstrip("/")
        # Text generation (AWS Bedrock)
        self.aws_region: str = os.getenv("AWS_REGION", "us-east-1")
        self.aws_access_key_id: str | None = os.getenv("AWS_ACCESS_KEY_ID") or None
        self.aws_secret_access_key: str | None = os.getenv("AWS_SECRET_ACCESS_KEY") or None
        self.bedrock_model_id: str = os.getenv("BEDROCK_MODEL_ID", "")
        self.bedrock_max_tokens: int = int(os.getenv("BEDROCK_MAX_TOKENS", "1500"))
        self.bedrock_temperature: float = float(os.getenv("BEDROCK_TEMPERATURE", "0.7"))
        self.content_batch_size: int = max(1, int(os.getenv("CONTENT_BATCH_SIZE", "5")))
        # App meta
        self.app_name: str = "CCPQ Academy Backend"
        self.debug: bool = os.getenv("DEBUG", "False").lower() == "true"
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.allow_origins: list[str] = _csv(
            os.getenv("ALLOW_ORIGINS", "https://ccpq.co.za,http://localhost:5173,http://localhost:8080")
        )

    @property
    def supabase_key(self) -> str:
        # The server writes enrollments on behalf of payers, so prefer the service role.
        return self.supabase_service_role_key or self.supabase_anon_key

    @property
    def paypal_configured(self) -> bool:
        return bool(self.paypal_client_id and self.paypal_secret_key)

    @property
    def default_return_url(self) -> str:
        return f"{self.site_url}/payment-success"

    @property
    def default_cancel_url(self) -> str:
        return f"{self.site_url}/courses"

    def get_database_url(self) -> str:
        return self.database_url


@lru_cache()
def get_settings() -> Settings:
    return Settings()
