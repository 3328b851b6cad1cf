import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Connection

from storefront.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class PasswordResetRepository(BaseRepository):
    """One-hour, single-use password reset links"""

    @property
    def table_name(self) -> str:
        return "password_resets"

    @property
    def id_column(self) -> str:
        return "reset_id"

    def purge_for_user(self, user_id: int, now: datetime) -> int:
        """Drop the user's earlier links and every expired link."""
        command = """
        DELETE FROM password_resets
        WHERE user_id = :user_id OR expires_at < :now
        """
        return self.execute_command(command, {"user_id": user_id, "now": now})

    def create(self, user_id: int, token_hash: str, expires_at: datetime) -> int:
        command = """
        INSERT INTO password_resets (user_id, hash, expires_at, completed)
        VALUES (:user_id, :hash, :expires_at, :completed)
        """
        return self.execute_insert_returning_id(
            command,
            {"user_id": user_id, "hash": token_hash, "expires_at": expires_at, "completed": False},
        )

    def find_valid(self, token_hash: str, now: datetime, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        query = """
        SELECT r.reset_id, r.user_id, r.expires_at, u.username, u.email
        FROM password_resets r
        JOIN users u ON u.user_id = r.user_id
        WHERE r.hash = :hash AND r.completed = :completed AND r.expires_at > :now
        """
        return self.execute_single_query(
            query, {"hash": token_hash, "completed": False, "now": now}, conn=conn
        )

    def mark_used(self, reset_id: int, now: datetime, conn: Optional[Connection] = None) -> int:
        command = """
        UPDATE password_resets
        SET completed = :completed, completed_at = :now
        WHERE reset_id = :reset_id
        """
        return self.execute_command(
            command, {"completed": True, "now": now, "reset_id": reset_id}, conn=conn
        )


class RememberMeRepository(BaseRepository):
    """bcrypt-hashed persistent login tokens"""

    @property
    def table_name(self) -> str:
        return "remember_me_tokens"

    @property
    def id_column(self) -> str:
        return "token_id"

    def create(self, user_id: int, token_hash: str, expires_at: datetime, conn: Optional[Connection] = None) -> int:
        command = """
        INSERT INTO remember_me_tokens (user_id, token_hash, expires_at)
        VALUES (:user_id, :token_hash, :expires_at)
        """
        return self.execute_insert_returning_id(
            command,
            {"user_id": user_id, "token_hash": token_hash, "expires_at": expires_at},
            conn=conn,
        )

    def active_for_user(self, user_id: int, now: datetime) -> List[Dict[str, Any]]:
        query = """
        SELECT token_id, user_id, token_hash, expires_at
        FROM remember_me_tokens
        WHERE user_id = :user_id AND expires_at > :now
        ORDER BY token_id DESC
        """
        return self.execute_query(query, {"user_id": user_id, "now": now})

    def delete(self, token_id: int, conn: Optional[Connection] = None) -> int:
        return self.execute_command(
            "DELETE FROM remember_me_tokens WHERE token_id = :token_id", {"token_id": token_id}, conn=conn
        )

    def delete_expired(self, user_id: int, now: datetime) -> int:
        command = "DELETE FROM remember_me_tokens WHERE user_id = :user_id AND expires_at <= :now"
        return self.execute_command(command, {"user_id": user_id, "now": now})

    def delete_for_user(self, user_id: int, conn: Optional[Connection] = None) -> int:
        return self.execute_command(
            "DELETE FROM remember_me_tokens WHERE user_id = :user_id", {"user_id": user_id}, conn=conn
        )
