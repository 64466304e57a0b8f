"""
Application configuration.
All settings are loaded from environment variables.
Required variables have no default and must be set in the environment or .env.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"  # local, development, production
    # CORS: comma-separated (e.g. http://localhost:3000,https://zfit.lk). Empty = default list in code.
    cors_origins: str = ""
    # Trusted proxy IPs (comma-separated). Used for X-Forwarded-For in production.
    trusted_proxy_ips: str = ""
    frontend_url: str = "http://localhost:3000"
    backend_url: str = "http://localhost:8000"

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # Docker-compose variables (not used by app directly)
    postgres_db: str | None = None
    postgres_user: str | None = None
    postgres_password: str | None = None

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # PAYHERE GATEWAY
    # ===========================================
    payhere_merchant_id: str  # Required, no default
    payhere_merchant_secret: str  # Required, no default
    payhere_base_url: str = "https://sandbox.payhere.lk"  # https://www.payhere.lk in production
    # Empty = derived from frontend_url / backend_url
    payhere_return_url: str = ""
    payhere_cancel_url: str = ""
    payhere_notify_url: str = ""
    payhere_country: str = "Sri Lanka"
    default_currency: str = "LKR"
    # Redelivered notifications with the same order/status are dropped for this long
    webhook_dedup_ttl: int = 86400

    # ===========================================
    # BANK TRANSFER
    # ===========================================
    # Defaults for the receiving account; admins can override them at runtime.
    bank_account_number: str = ""
    bank_name: str = ""
    bank_account_holder: str = ""

    # ===========================================
    # UPLOADS
    # ===========================================
    uploads_dir: str = "uploads"
    uploads_url_prefix: str = "/uploads"
    receipt_max_file_size_mb: int = 5
    allowed_receipt_extensions: str = ".jpg,.jpeg,.png,.gif,.webp"

    # ===========================================
    # EMAIL (Resend)
    # ===========================================
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com"
    email_sender: str = "ZFit Gym <no-reply@zfit.lk>"
    # development: every message goes to the Resend sandbox inbox
    email_mode: str = "development"
    email_timeout: float = 10.0
    gym_name: str = "ZFit Gym"

    # ===========================================
    # ADMIN API
    # ===========================================
    admin_api_key: str | None = None  # Optional, but required in production
    # Recorded as processed_by when the caller does not send X-Admin-Id
    admin_default_actor_id: str = "admin"

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("allowed_receipt_extensions")
    @classmethod
    def parse_extensions(cls, v: str) -> str:
        """Validate extensions format."""
        return v.lower().strip()

    @property
    def allowed_extensions_set(self) -> set[str]:
        """Get allowed extensions as a set."""
        return {ext.strip() for ext in self.allowed_receipt_extensions.split(",") if ext.strip()}

    @property
    def trusted_proxy_ips_set(self) -> set[str]:
        """Get trusted proxy IPs as a set."""
        return {ip.strip() for ip in self.trusted_proxy_ips.split(",") if ip.strip()}

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def effective_return_url(self) -> str:
        return self.payhere_return_url or f"{self.frontend_url}/payment/success"

    @property
    def effective_cancel_url(self) -> str:
        return self.payhere_cancel_url or f"{self.frontend_url}/payment/cancel"

    @property
    def effective_notify_url(self) -> str:
        return self.payhere_notify_url or f"{self.backend_url}/api/v1/gateways/webhook/payhere"

    @field_validator("payhere_merchant_secret")
    @classmethod
    def validate_merchant_secret(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("payhere_merchant_secret must not be empty")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
