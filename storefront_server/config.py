"""Runtime configuration from environment variables."""

import os
from typing import Optional

from pydantic import BaseModel, Field

from .models import AuthCredentials

DEFAULT_API_URL = "http://localhost:8080/api"


class Settings(BaseModel):
    """Server settings."""

    api_url: str = Field(default=DEFAULT_API_URL, description="Base URL of the store API")
    timeout: float = Field(default=15.0, gt=0, description="HTTP timeout in seconds")
    email: Optional[str] = Field(None, description="Account email for auto-login")
    password: Optional[str] = Field(None, description="Account password for auto-login")
    session_file: Optional[str] = Field(None, description="Session file path")
    storage_file: Optional[str] = Field(None, description="Local storage file path")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from STOREFRONT_* environment variables."""
        return cls(
            api_url=os.environ.get("STOREFRONT_API_URL", DEFAULT_API_URL),
            timeout=float(os.environ.get("STOREFRONT_TIMEOUT", "15")),
            email=os.environ.get("STOREFRONT_EMAIL"),
            password=os.environ.get("STOREFRONT_PASSWORD"),
            session_file=os.environ.get("STOREFRONT_SESSION_FILE"),
            storage_file=os.environ.get("STOREFRONT_STORAGE_FILE"),
        )

    @property
    def credentials(self) -> Optional[AuthCredentials]:
        if self.email and self.password:
            return AuthCredentials(email=self.email, password=self.password)
        return None
