# app/config/settings.py
from pydantic_settings import BaseSettings
from typing import Optional
import os

class Settings(BaseSettings):
    # App Info
    app_name: str = "Freight Marketplace API"
    version: str = "1.0.0"
    debug: bool = False

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./freight_marketplace.db")

    # Security
    secret_key: str = os.getenv("SECRET_KEY", "change-in-production")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 10080

    # Lifecycle engine
    # False makes the acceptance probe report "no multi-record atomicity"
    use_transactions: bool = True
    # Opt-in adjacency table for non-admin shipment transitions
    enforce_transition_graph: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Server
    host: str = "0.0.0.0"
    port: int = int(os.getenv("PORT", 10000))

    # Hosted PostgreSQL
    @property
    def database_url_with_ssl(self) -> str:
        """Add sslmode for hosted PostgreSQL connections"""
        if self.database_url.startswith("postgresql") and "localhost" not in self.database_url:
            if "sslmode=" not in self.database_url:
                return f"{self.database_url}?sslmode=require"
        return self.database_url

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = 'ignore'

settings = Settings()
