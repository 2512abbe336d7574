from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # -------------------------------------------------
    # General
    # -------------------------------------------------
    PROJECT_NAME: str = "SAKAN API"
    ENV: str = "development"
    LOG_LEVEL: str = Field("INFO", env="LOG_LEVEL")

    # Public web app (registration links, Stripe return URLs)
    APP_URL: str = Field("http://localhost:3000", env="APP_URL")

    # -------------------------------------------------
    # CORS (auto-built below)
    # -------------------------------------------------
    EXTRA_CORS_ORIGINS: List[str] = []
    BACKEND_CORS_ORIGINS: List[str] = []

    # -------------------------------------------------
    # Supabase (Primary DB, Auth & Storage)
    # -------------------------------------------------
    SUPABASE_URL: Optional[str] = Field(None, env="SUPABASE_URL")
    SUPABASE_ANON_KEY: Optional[str] = Field(None, env="SUPABASE_ANON_KEY")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(None, env="SUPABASE_SERVICE_ROLE_KEY")
    SUPABASE_SCHEMA: str = Field("dbasakan", env="SUPABASE_SCHEMA")
    STORAGE_BUCKET: str = Field("SAKAN", env="STORAGE_BUCKET")

    # -------------------------------------------------
    # SMTP Email
    # -------------------------------------------------
    SMTP_HOST: Optional[str] = Field(None, env="SMTP_HOST")
    SMTP_PORT: Optional[int] = Field(None, env="SMTP_PORT")
    SMTP_USER: Optional[str] = Field(None, env="SMTP_USER")
    SMTP_PASS: Optional[str] = Field(None, env="SMTP_PASS")
    SMTP_FROM: Optional[str] = Field(None, env="SMTP_FROM")

    # -------------------------------------------------
    # Stripe Subscription Billing
    # -------------------------------------------------
    STRIPE_SECRET_KEY: Optional[str] = Field(None, env="STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET: Optional[str] = Field(None, env="STRIPE_WEBHOOK_SECRET")

    # -------------------------------------------------
    # Mobile tokens / Cron / Admin
    # -------------------------------------------------
    CRON_SECRET: Optional[str] = Field(None, env="CRON_SECRET")
    MOBILE_JWT_SECRET: Optional[str] = Field(None, env="MOBILE_JWT_SECRET")
    MOBILE_JWT_EXPIRE_DAYS: int = Field(30, env="MOBILE_JWT_EXPIRE_DAYS")
    ADMIN_SESSION_DAYS: int = Field(7, env="ADMIN_SESSION_DAYS")

    # Background jobs (reminders, contribution auto-generation)
    ENABLE_SCHEDULER: bool = Field(False, env="ENABLE_SCHEDULER")

    # -------------------------------------------------
    # Model Config
    # -------------------------------------------------
    class Config:
        case_sensitive = True


# Instantiate settings
settings = Settings()

# -------------------------------------------------
# Build CORS list dynamically after loading settings
# -------------------------------------------------
cors_origins = []

# 1) the web app itself
if settings.APP_URL:
    domain = settings.APP_URL
    if not domain.startswith("http"):
        domain = f"https://{domain}"
    cors_origins.append(domain.rstrip("/"))

# 2) any extra origins (mobile dev servers, staging)
cors_origins.extend([d.rstrip("/") for d in settings.EXTRA_CORS_ORIGINS])

# 3) remove duplicates
settings.BACKEND_CORS_ORIGINS = sorted(list(set(cors_origins)))
