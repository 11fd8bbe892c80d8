from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TOKEN_SIGNING_SECRET = "siteops-dev-token-secret-change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="SITEOPS_", extra="ignore")

    app_name: str = "SiteOps Project Management API"
    env: str = "dev"
    api_host: str = "0.0.0.0"
    api_port: int = 5000

    database_url: str = "sqlite+pysqlite:///./siteops.db"
    log_level: str = "INFO"

    auth_enabled: bool = True
    token_signing_secret: str = DEFAULT_TOKEN_SIGNING_SECRET
    token_ttl_seconds: int = 7 * 24 * 3600

    # OTP generator: fixed | random
    otp_mode: str = "fixed"
    otp_fixed_code: str = "1234"
    otp_length: int = Field(default=4, ge=4, le=6)
    otp_ttl_seconds: int = 600
    otp_echo: bool = True

    report_timezone: str = "UTC"

    default_page_size: int = 10
    max_page_size: int = 100

    def model_post_init(self, __context) -> None:
        if self.env.lower() == "dev":
            return

        insecure_items: list[str] = []
        if self.token_signing_secret == DEFAULT_TOKEN_SIGNING_SECRET:
            insecure_items.append("SITEOPS_TOKEN_SIGNING_SECRET")
        if self.otp_mode == "fixed":
            insecure_items.append("SITEOPS_OTP_MODE")

        if insecure_items:
            raise ValueError(
                "insecure defaults are not allowed outside dev mode; set env vars: "
                + ", ".join(sorted(insecure_items))
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
