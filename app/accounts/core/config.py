# app/accounts/core/config.py
from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # 기본 앱 설정
    app_env: str = Field("local", alias="APP_ENV")
    app_version: str = Field("0.1.0", alias="APP_VERSION")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # DB
    database_url: str = Field(..., alias="DATABASE_URL")
    database_driver: str = Field("psycopg2", alias="DATABASE_DRIVER")
    db_sslmode: Optional[str] = Field(None, alias="DB_SSLMODE")
    auto_create_tables: bool = Field(True, alias="AUTO_CREATE_TABLES")

    # JWT
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_secret: str = Field("dev_access_secret_change_me", alias="ACCESS_TOKEN_SECRET")
    access_token_expire_minutes: int = Field(60, ge=1, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_secret: str = Field("dev_refresh_secret_change_me", alias="REFRESH_TOKEN_SECRET")
    refresh_token_expire_days: int = Field(10, ge=1, alias="REFRESH_TOKEN_EXPIRE_DAYS")

    # 쿠키 (로컬 http 개발 시 COOKIE_SECURE=false)
    cookie_secure: bool = Field(True, alias="COOKIE_SECURE")
    cookie_samesite: str = Field("lax", alias="COOKIE_SAMESITE")

    cors_allow_origins: str = Field(
        "http://localhost:3000,http://localhost:5173", alias="CORS_ALLOW_ORIGINS"
    )

    # 업로드 / 이미지 호스트
    upload_temp_dir: str = Field("./public/temp", alias="UPLOAD_TEMP_DIR")
    cloudinary_cloud_name: str = Field("", alias="CLOUDINARY_CLOUD_NAME")
    cloudinary_api_key: str = Field("", alias="CLOUDINARY_API_KEY")
    cloudinary_api_secret: str = Field("", alias="CLOUDINARY_API_SECRET")
    cloudinary_timeout_seconds: float = Field(30.0, gt=0, alias="CLOUDINARY_TIMEOUT_SECONDS")

    @model_validator(mode="after")
    def _check_token_secrets(self) -> "Settings":
        if not self.access_token_secret or not self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must be set")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ")
        return self

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]

    @property
    def access_token_max_age(self) -> int:
        return self.access_token_expire_minutes * 60

    @property
    def refresh_token_max_age(self) -> int:
        return self.refresh_token_expire_days * 24 * 60 * 60


@lru_cache
def get_settings() -> Settings:
    return Settings()
