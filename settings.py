"""
Application Settings

Values come from the environment (a local .env file is loaded first).
Build one Settings object at startup and hand it to whatever needs it.
"""

import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()


def _split_origins(raw: str) -> List[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class Settings(BaseModel):
    port: int = 4000
    jwt_secret: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    jwt_expiry_days: int = 7
    google_client_id: str = ""
    allowed_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"]
    )

    # Storage: MongoDB when both are set, JSON files under data_dir otherwise
    data_dir: str = "data"
    database_url: Optional[str] = None
    database_name: Optional[str] = None

    email_host: str = "smtp.gmail.com"
    email_port: int = 587
    email_user: str = ""
    email_pass: str = ""
    email_timeout: float = 30.0

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            port=int(os.getenv("PORT", defaults.port)),
            jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
            google_client_id=os.getenv("GOOGLE_CLIENT_ID", ""),
            allowed_origins=_split_origins(
                os.getenv("ALLOWED_ORIGINS", ",".join(defaults.allowed_origins))
            ),
            data_dir=os.getenv("DATA_DIR", defaults.data_dir),
            database_url=os.getenv("DATABASE_URL") or None,
            database_name=os.getenv("DATABASE_NAME") or None,
            email_host=os.getenv("EMAIL_HOST", defaults.email_host),
            email_port=int(os.getenv("EMAIL_PORT", defaults.email_port)),
            email_user=os.getenv("EMAIL_USER", ""),
            email_pass=os.getenv("EMAIL_PASS", ""),
            email_timeout=float(os.getenv("EMAIL_TIMEOUT", defaults.email_timeout)),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )

    @property
    def uses_mongo(self) -> bool:
        return bool(self.database_url and self.database_name)

    @property
    def mail_configured(self) -> bool:
        return bool(self.email_user and self.email_pass)
