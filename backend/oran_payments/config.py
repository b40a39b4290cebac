from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    database_url: str = "sqlite:///./oran_payments.db"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    engine_version: str = "2026-10-18.v1"

    # ---- Planning assistant (Gemini) ----
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1"
    gemini_timeout_seconds: float = 30.0

    # ---- Payment gateway (Paystack) ----
    paystack_secret_key: str | None = None
    paystack_base_url: str = "https://api.paystack.co"
    paystack_timeout_seconds: float = 20.0
    payment_reference_prefix: str = "ORAN-MS"

    # ---- Email ----
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_pass: str | None = None
    smtp_from: str = "ORAN <no-reply@oran.local>"
    ops_inbox_email: str | None = None
    frontend_base_url: str = "https://oran-system.vercel.app"

    # ---- Follow-up visit scheduling ----
    visit_lead_days: int = 3
    visit_hour_local: int = 10
    visit_timezone: str = "Africa/Lagos"

    # ---- Concurrency ----
    project_lock_ttl_seconds: int = 60

    # Regenerating a plan after a milestone was paid voids that payment record.
    allow_plan_change_after_payment: bool = False

    # ---- Auth seam ----
    auth_mode: str = "dev"  # dev|jwt
    dev_auto_provision: bool = True
    dev_header_user_email: str = "X-User-Email"
    dev_header_user_role: str = "X-User-Role"
    jwt_secret: str = "dev-only-change-me"

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod:
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")
            if self.jwt_secret == "dev-only-change-me":
                raise ValueError("SECURITY: jwt_secret must be set in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")

        if not (0 <= int(self.visit_hour_local) <= 23):
            raise ValueError("visit_hour_local must be between 0 and 23")


settings = Settings()
