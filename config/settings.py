"""
Process-wide settings, read once from the environment at startup.

The app factory builds a Settings instance and hands it to everything that
needs configuration; nothing below reads os.environ on its own.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Request

DEFAULT_BASE_RPC_URL = "https://mainnet.base.org"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,https://sonarbot.xyz"


def _split_csv(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str

    # ─── Connection-pool tuning ────────────────────────────────────
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800

    # ─── Payments / chain ──────────────────────────────────────────
    sponsored_payment_address: Optional[str] = None
    subscription_payment_address: Optional[str] = None
    base_rpc_url: str = DEFAULT_BASE_RPC_URL
    rpc_timeout_sec: float = 10.0

    # ─── Auth ──────────────────────────────────────────────────────
    admin_api_key: Optional[str] = None
    supabase_project_url: str = ""
    supabase_jwt_secret: Optional[str] = None
    supabase_jwt_aud: str = "authenticated"

    cors_origins: List[str] = field(default_factory=lambda: _split_csv(DEFAULT_CORS_ORIGINS))

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL is not set in the environment")

        snr_address = os.getenv("SNR_PAYMENT_ADDRESS") or None
        return cls(
            database_url=database_url,
            db_pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
            db_max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "10")),
            db_pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
            db_pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "1800")),
            # Sponsored spots fall back to the subscription wallet.
            sponsored_payment_address=os.getenv("SPONSORED_PAYMENT_ADDRESS") or snr_address,
            subscription_payment_address=snr_address,
            base_rpc_url=os.getenv("BASE_RPC_URL", DEFAULT_BASE_RPC_URL).rstrip("/"),
            rpc_timeout_sec=float(os.getenv("RPC_TIMEOUT_SEC", "10")),
            admin_api_key=os.getenv("ADMIN_API_KEY") or None,
            supabase_project_url=os.getenv("SUPABASE_PROJECT_URL", "").rstrip("/"),
            supabase_jwt_secret=os.getenv("SUPABASE_JWT_SECRET") or None,
            supabase_jwt_aud=os.getenv("SUPABASE_JWT_AUD", "authenticated"),
            cors_origins=_split_csv(os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)),
        )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
