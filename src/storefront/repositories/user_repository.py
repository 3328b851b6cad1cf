import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Connection

from storefront.db import lock_clause
from storefront.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "phone", "address", "city", "country")

USER_COLUMNS = """
    u.user_id, u.username, u.email, u.password, u.role, u.is_active,
    u.activation_code, u.created_at, u.updated_at
"""


class UserRepository(BaseRepository):
    """Accounts and their one-to-one profile rows"""

    @property
    def table_name(self) -> str:
        return "users"

    @property
    def id_column(self) -> str:
        return "user_id"

    @staticmethod
    def _normalize(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        # SQLite hands booleans back as 0/1
        if row is not None and "is_active" in row:
            row["is_active"] = bool(row["is_active"])
        return row

    def get_by_id(self, user_id: int, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        query = f"SELECT {USER_COLUMNS} FROM users u WHERE u.user_id = :user_id"
        return self._normalize(self.execute_single_query(query, {"user_id": user_id}, conn=conn))

    def get_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        query = f"SELECT {USER_COLUMNS} FROM users u WHERE u.username = :username"
        return self._normalize(self.execute_single_query(query, {"username": username}))

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        query = f"SELECT {USER_COLUMNS} FROM users u WHERE LOWER(u.email) = :email"
        return self._normalize(self.execute_single_query(query, {"email": email.lower()}))

    def get_by_activation_code_for_update(self, code: str, conn: Connection) -> Optional[Dict[str, Any]]:
        """Row-locked lookup; must run inside ``storefront.db.transaction``."""
        query = (
            "SELECT user_id, username, is_active FROM users "
            "WHERE activation_code = :code" + lock_clause(conn)
        )
        return self._normalize(self.execute_single_query(query, {"code": code}, conn=conn))

    def username_or_email_exists(self, username: str, email: str) -> bool:
        query = """
        SELECT 1 FROM users
        WHERE LOWER(username) = :username OR LOWER(email) = :email
        """
        return self.execute_scalar(query, {"username": username.lower(), "email": email.lower()}) is not None

    def email_taken_by_other(self, email: str, user_id: int) -> bool:
        query = "SELECT 1 FROM users WHERE LOWER(email) = :email AND user_id <> :user_id"
        return self.execute_scalar(query, {"email": email.lower(), "user_id": user_id}) is not None

    def create(
        self,
        username: str,
        email: str,
        password_hash: str,
        activation_code: Optional[str],
        role: str = "customer",
        is_active: bool = False,
    ) -> int:
        command = """
        INSERT INTO users (username, email, password, role, is_active, activation_code)
        VALUES (:username, :email, :password, :role, :is_active, :activation_code)
        """
        return self.execute_insert_returning_id(
            command,
            {
                "username": username,
                "email": email,
                "password": password_hash,
                "role": role,
                "is_active": is_active,
                "activation_code": activation_code,
            },
        )

    def activate(self, user_id: int, conn: Connection) -> int:
        command = """
        UPDATE users SET is_active = :active, updated_at = CURRENT_TIMESTAMP
        WHERE user_id = :user_id
        """
        return self.execute_command(command, {"active": True, "user_id": user_id}, conn=conn)

    def set_activation_code(self, user_id: int, code: str) -> int:
        command = """
        UPDATE users SET activation_code = :code, updated_at = CURRENT_TIMESTAMP
        WHERE user_id = :user_id
        """
        return self.execute_command(command, {"code": code, "user_id": user_id})

    def update_password(self, user_id: int, password_hash: str, conn: Optional[Connection] = None) -> int:
        command = """
        UPDATE users SET password = :password, updated_at = CURRENT_TIMESTAMP
        WHERE user_id = :user_id
        """
        return self.execute_command(command, {"password": password_hash, "user_id": user_id}, conn=conn)

    def update_email(self, user_id: int, email: str) -> int:
        command = """
        UPDATE users SET email = :email, updated_at = CURRENT_TIMESTAMP
        WHERE user_id = :user_id
        """
        return self.execute_command(command, {"email": email, "user_id": user_id})

    def update_role(self, user_id: int, role: str, conn: Optional[Connection] = None) -> int:
        command = """
        UPDATE users SET role = :role, updated_at = CURRENT_TIMESTAMP
        WHERE user_id = :user_id
        """
        return self.execute_command(command, {"role": role, "user_id": user_id}, conn=conn)

    def delete(self, user_id: int, conn: Optional[Connection] = None) -> int:
        return self.execute_command("DELETE FROM users WHERE user_id = :user_id", {"user_id": user_id}, conn=conn)

    def list_users(self) -> List[Dict[str, Any]]:
        query = """
        SELECT user_id, username, email, role, is_active, created_at
        FROM users
        ORDER BY created_at DESC, user_id DESC
        """
        return [self._normalize(row) for row in self.execute_query(query)]

    def count_where(self, condition: str, params: Optional[Dict[str, Any]] = None) -> int:
        query = f"SELECT COUNT(*) FROM users WHERE {condition}"
        return int(self.execute_scalar(query, params) or 0)

    # ------------------------------------------------------------------ #
    # Profiles                                                             #
    # ------------------------------------------------------------------ #

    def get_user_info(self, user_id: int) -> Optional[Dict[str, Any]]:
        query = """
        SELECT
            u.user_id, u.username, u.email, u.role, u.is_active, u.created_at,
            p.first_name, p.last_name, p.phone, p.address, p.city, p.country,
            p.profile_image_filename
        FROM users u
        LEFT JOIN user_profiles p ON p.user_id = u.user_id
        WHERE u.user_id = :user_id
        """
        return self._normalize(self.execute_single_query(query, {"user_id": user_id}))

    def upsert_profile(self, user_id: int, fields: Dict[str, Optional[str]]) -> int:
        values = {name: fields.get(name) for name in PROFILE_FIELDS}
        columns = ", ".join(PROFILE_FIELDS)
        placeholders = ", ".join(f":{name}" for name in PROFILE_FIELDS)
        updates = ", ".join(f"{name} = excluded.{name}" for name in PROFILE_FIELDS)
        command = f"""
        INSERT INTO user_profiles (user_id, {columns})
        VALUES (:user_id, {placeholders})
        ON CONFLICT (user_id) DO UPDATE SET {updates}, updated_at = CURRENT_TIMESTAMP
        """
        return self.execute_command(command, {"user_id": user_id, **values})

    def set_profile_image(self, user_id: int, filename: Optional[str]) -> int:
        command = """
        INSERT INTO user_profiles (user_id, profile_image_filename)
        VALUES (:user_id, :filename)
        ON CONFLICT (user_id) DO UPDATE SET
            profile_image_filename = excluded.profile_image_filename,
            updated_at = CURRENT_TIMESTAMP
        """
        return self.execute_command(command, {"user_id": user_id, "filename": filename})
