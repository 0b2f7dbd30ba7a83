import hmac
import logging

from config import (
    DEFAULT_LANGUAGE,
    DEFAULT_MANAGER_PASSWORD,
    SETTING_LANGUAGE,
    SETTING_MANAGER_PASSWORD,
)
from database import Database
from i18n import LANGUAGES, set_language

logger = logging.getLogger(__name__)


class SettingsService:
    """Service for application settings.

    Handles the manager password that guards task edits and the display
    language. All data operations are async.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def get_manager_password(self) -> str:
        return await self._db.get_setting(SETTING_MANAGER_PASSWORD, DEFAULT_MANAGER_PASSWORD)

    async def verify_manager_password(self, attempt: str) -> bool:
        expected = await self.get_manager_password()
        return hmac.compare_digest(attempt.encode("utf-8"), expected.encode("utf-8"))

    async def change_manager_password(self, current: str, new: str) -> bool:
        """Replace the manager password. Returns False if ``current`` is wrong."""
        if not await self.verify_manager_password(current):
            logger.info("Manager password change rejected")
            return False
        if not new:
            raise ValueError("Manager password cannot be empty")
        await self._db.set_setting(SETTING_MANAGER_PASSWORD, new)
        return True

    async def load_language(self) -> str:
        """Read the stored language and make it current."""
        lang = await self._db.get_setting(SETTING_LANGUAGE, DEFAULT_LANGUAGE)
        set_language(lang)
        return lang

    async def save_language(self, lang: str) -> None:
        if lang not in LANGUAGES:
            raise ValueError(f"Unsupported language: {lang}")
        await self._db.set_setting(SETTING_LANGUAGE, lang)
        set_language(lang)
