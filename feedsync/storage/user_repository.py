"""
User Repository
===============

Users, their categories and their notification integrations.
"""

import sqlite3
from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.models import User, Category, Integration
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import StorageError, ErrorCode


DEFAULT_LANGUAGE = "en_US"


class UserRepository:
    """Repository for users, categories and integrations."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("user_repository")

    def create_user(self, user: User) -> int:
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    "INSERT INTO users (username, language, timezone) VALUES (?, ?, ?)",
                    (user.username, user.language, user.timezone),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError(
                f"Unable to create user {user.username!r}: {e}",
                error_code=ErrorCode.DATABASE_CONSTRAINT,
            ) from e

        user.id = cursor.lastrowid
        self.logger.info(f"Created user {user.id}: {user.username}")
        return user.id

    def get_user(self, user_id: int) -> Optional[User]:
        row = self.db.execute_one("SELECT * FROM users WHERE id = ?", (user_id,))
        if not row:
            return None
        data = dict(row)
        data.pop("created_at", None)
        return User(**data)

    def get_user_language(self, user_id: int) -> str:
        """Language of the user, falling back to the default locale."""
        try:
            row = self.db.execute_one("SELECT language FROM users WHERE id = ?", (user_id,))
        except sqlite3.Error as e:
            self.logger.warning(f"Unable to load language of user {user_id}: {e}")
            return DEFAULT_LANGUAGE

        return row["language"] if row and row["language"] else DEFAULT_LANGUAGE

    def create_category(self, category: Category) -> int:
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    "INSERT INTO categories (user_id, title) VALUES (?, ?)",
                    (category.user_id, category.title),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError(
                f"Unable to create category {category.title!r}: {e}",
                error_code=ErrorCode.DATABASE_CONSTRAINT,
            ) from e

        category.id = cursor.lastrowid
        return category.id

    def category_exists(self, user_id: int, category_id: int) -> bool:
        try:
            row = self.db.execute_one(
                "SELECT 1 FROM categories WHERE id = ? AND user_id = ?",
                (category_id, user_id),
            )
        except sqlite3.Error as e:
            raise StorageError(f"Unable to check category #{category_id}: {e}") from e

        return row is not None

    def get_integration(self, user_id: int) -> Optional[Integration]:
        """Get the user's notification integration, if configured."""
        try:
            row = self.db.execute_one(
                "SELECT * FROM integrations WHERE user_id = ?", (user_id,)
            )
        except sqlite3.Error as e:
            raise StorageError(f"Unable to fetch integration of user {user_id}: {e}") from e

        if not row:
            return None
        data = dict(row)
        data["telegram_enabled"] = bool(data["telegram_enabled"])
        return Integration(**data)

    def save_integration(self, integration: Integration) -> None:
        try:
            self.db.execute_update(
                """
                INSERT INTO integrations (user_id, telegram_enabled, telegram_token, telegram_chat_id)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    telegram_enabled = excluded.telegram_enabled,
                    telegram_token = excluded.telegram_token,
                    telegram_chat_id = excluded.telegram_chat_id
                """,
                (
                    integration.user_id,
                    integration.telegram_enabled,
                    integration.telegram_token,
                    integration.telegram_chat_id,
                ),
            )
        except sqlite3.Error as e:
            raise StorageError(
                f"Unable to save integration of user {integration.user_id}: {e}"
            ) from e
