from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Connection

from storefront.repositories.base import BaseRepository


class ActivityLogRepository(BaseRepository):
    """Append-only audit trail of admin actions"""

    @property
    def table_name(self) -> str:
        return "admin_activity_log"

    @property
    def id_column(self) -> str:
        return "log_id"

    def log(
        self,
        admin_id: int,
        action: str,
        table_name: str,
        record_id: Optional[int],
        details: Optional[str],
        conn: Optional[Connection] = None,
    ) -> int:
        command = """
        INSERT INTO admin_activity_log (admin_id, action, table_name, record_id, details)
        VALUES (:admin_id, :action, :table_name, :record_id, :details)
        """
        return self.execute_insert_returning_id(
            command,
            {
                "admin_id": admin_id,
                "action": action,
                "table_name": table_name,
                "record_id": record_id,
                "details": details,
            },
            conn=conn,
        )

    def recent(self, limit: int = 10) -> List[Dict[str, Any]]:
        query = """
        SELECT l.log_id, l.action, l.table_name, l.record_id, l.details, l.created_at,
               u.username AS admin_username
        FROM admin_activity_log l
        LEFT JOIN users u ON u.user_id = l.admin_id
        ORDER BY l.created_at DESC, l.log_id DESC
        LIMIT :limit
        """
        return self.execute_query(query, {"limit": limit})
