"""Single-user session state and the demo login gate."""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from soilsnap.config import Settings
    from soilsnap.ml.pipeline import AnalysisResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedImage:
    """An uploaded image held in memory for the current analysis."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class Session:
    """State for the one browser session this process serves."""

    def __init__(self) -> None:
        self.authenticated: bool = False
        self.image: UploadedImage | None = None
        self.result: AnalysisResult | None = None

    def set_image(self, image: UploadedImage) -> None:
        """Replace the current image and clear results from the previous one."""
        self.image = image
        self.result = None

    def logout(self) -> None:
        self.authenticated = False
        self.image = None
        self.result = None


async def check_credentials(settings: Settings, email: str, password: str) -> bool:
    """Compare against the fixed demo credentials after the login delay."""
    await asyncio.sleep(settings.login_delay)
    email_ok = secrets.compare_digest(email.encode(), settings.login_email.encode())
    password_ok = secrets.compare_digest(password.encode(), settings.login_password.encode())
    if not (email_ok and password_ok):
        logger.info("Rejected login for %s", email)
        return False
    return True
