from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Connection

from storefront.repositories.base import BaseRepository


class TagRepository(BaseRepository):
    @property
    def table_name(self) -> str:
        return "tags"

    @property
    def id_column(self) -> str:
        return "tag_id"

    def list_all(self) -> List[Dict[str, Any]]:
        query = """
        SELECT t.tag_id, t.tag_name, COUNT(m.product_id) AS product_count
        FROM tags t
        LEFT JOIN product_tag_mapping m ON m.tag_id = t.tag_id
        GROUP BY t.tag_id, t.tag_name
        ORDER BY t.tag_name
        """
        return self.execute_query(query)

    def get_by_id(self, tag_id: int) -> Optional[Dict[str, Any]]:
        return self.execute_single_query("SELECT tag_id, tag_name FROM tags WHERE tag_id = :id", {"id": tag_id})

    def get_by_name(self, name: str, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        return self.execute_single_query(
            "SELECT tag_id, tag_name FROM tags WHERE LOWER(tag_name) = :name",
            {"name": name.lower()},
            conn=conn,
        )

    def create(self, name: str, conn: Optional[Connection] = None) -> int:
        return self.execute_insert_returning_id(
            "INSERT INTO tags (tag_name) VALUES (:name)", {"name": name}, conn=conn
        )

    def rename(self, tag_id: int, name: str) -> int:
        return self.execute_command(
            "UPDATE tags SET tag_name = :name WHERE tag_id = :id", {"name": name, "id": tag_id}
        )

    def delete(self, tag_id: int) -> int:
        return self.execute_command("DELETE FROM tags WHERE tag_id = :id", {"id": tag_id})
