import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.engine import Connection

from storefront.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "!"

PRODUCT_COLUMNS = """
    p.product_id, p.product_name, p.slug, p.description, p.price_amount,
    p.currency, p.image_path, p.created_at, p.updated_at
"""


def like_escape(term: str) -> str:
    """Make %, _ and the escape character match literally in a LIKE ... ESCAPE '!' pattern."""
    for char in (LIKE_ESCAPE, "%", "_"):
        term = term.replace(char, LIKE_ESCAPE + char)
    return term


class ProductRepository(BaseRepository):
    """Products plus their category and tag mappings"""

    @property
    def table_name(self) -> str:
        return "products"

    @property
    def id_column(self) -> str:
        return "product_id"

    def get_by_id(self, product_id: int, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        query = f"SELECT {PRODUCT_COLUMNS} FROM products p WHERE p.product_id = :product_id"
        return self.execute_single_query(query, {"product_id": product_id}, conn=conn)

    def get_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        query = f"SELECT {PRODUCT_COLUMNS} FROM products p WHERE p.slug = :slug"
        return self.execute_single_query(query, {"slug": slug})

    def slug_exists(self, slug: str, exclude_id: Optional[int] = None, conn: Optional[Connection] = None) -> bool:
        query = "SELECT 1 FROM products WHERE slug = :slug"
        params: Dict[str, Any] = {"slug": slug}
        if exclude_id is not None:
            query += " AND product_id <> :exclude_id"
            params["exclude_id"] = exclude_id
        return self.execute_scalar(query, params, conn=conn) is not None

    def list_page(self, limit: int, offset: int) -> List[Dict[str, Any]]:
        query = f"""
        SELECT {PRODUCT_COLUMNS}
        FROM products p
        ORDER BY p.created_at DESC, p.product_id DESC
        LIMIT :limit OFFSET :offset
        """
        return self.execute_query(query, {"limit": limit, "offset": offset})

    def latest(self, limit: int) -> List[Dict[str, Any]]:
        return self.list_page(limit, 0)

    def search(self, keyword: str, limit: int = 50) -> List[Dict[str, Any]]:
        query = f"""
        SELECT {PRODUCT_COLUMNS}
        FROM products p
        WHERE LOWER(p.product_name) LIKE :q ESCAPE '!' OR LOWER(p.description) LIKE :q ESCAPE '!'
        ORDER BY p.product_name
        LIMIT :limit
        """
        return self.execute_query(query, {"q": f"%{like_escape(keyword.lower())}%", "limit": limit})

    def suggestions(self, prefix: str, limit: int = 5) -> List[str]:
        query = """
        SELECT product_name FROM products
        WHERE LOWER(product_name) LIKE :prefix ESCAPE '!'
        ORDER BY product_name
        LIMIT :limit
        """
        rows = self.execute_query(query, {"prefix": f"{like_escape(prefix.lower())}%", "limit": limit})
        return [row["product_name"] for row in rows]

    @staticmethod
    def _filter_clause(
        keyword: Optional[str],
        category_id: Optional[int],
        min_price: Optional[int],
        max_price: Optional[int],
    ) -> Tuple[str, Dict[str, Any]]:
        conditions, params = [], {}
        if keyword:
            conditions.append("(LOWER(p.product_name) LIKE :q ESCAPE '!' OR LOWER(p.description) LIKE :q ESCAPE '!')")
            params["q"] = f"%{like_escape(keyword.lower())}%"
        if category_id is not None:
            conditions.append(
                "EXISTS (SELECT 1 FROM product_category_mapping m"
                " WHERE m.product_id = p.product_id AND m.category_id = :category_id)"
            )
            params["category_id"] = category_id
        if min_price is not None:
            conditions.append("p.price_amount >= :min_price")
            params["min_price"] = min_price
        if max_price is not None:
            conditions.append("p.price_amount <= :max_price")
            params["max_price"] = max_price
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        return where, params

    def filter_page(
        self,
        limit: int,
        offset: int,
        keyword: Optional[str] = None,
        category_id: Optional[int] = None,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """One page of products matching every given filter, plus the total match count."""
        where, params = self._filter_clause(keyword, category_id, min_price, max_price)
        total = self.execute_scalar(f"SELECT COUNT(*) FROM products p {where}", params)
        query = f"""
        SELECT {PRODUCT_COLUMNS}
        FROM products p
        {where}
        ORDER BY p.product_name, p.product_id
        LIMIT :limit OFFSET :offset
        """
        rows = self.execute_query(query, {**params, "limit": limit, "offset": offset})
        return rows, int(total or 0)

    def by_category(self, category_id: Optional[int]) -> List[Dict[str, Any]]:
        if category_id is None:
            query = f"SELECT {PRODUCT_COLUMNS} FROM products p ORDER BY p.product_name"
            return self.execute_query(query)
        query = f"""
        SELECT {PRODUCT_COLUMNS}
        FROM products p
        JOIN product_category_mapping m ON m.product_id = p.product_id
        WHERE m.category_id = :category_id
        ORDER BY p.product_name
        """
        return self.execute_query(query, {"category_id": category_id})

    def create(self, data: Dict[str, Any], conn: Optional[Connection] = None) -> int:
        command = """
        INSERT INTO products (product_name, slug, description, price_amount, currency, image_path)
        VALUES (:product_name, :slug, :description, :price_amount, :currency, :image_path)
        """
        return self.execute_insert_returning_id(command, self._row_params(data), conn=conn)

    def update(self, product_id: int, data: Dict[str, Any], conn: Optional[Connection] = None) -> int:
        command = """
        UPDATE products SET
            product_name = :product_name,
            slug = :slug,
            description = :description,
            price_amount = :price_amount,
            currency = :currency,
            image_path = :image_path,
            updated_at = CURRENT_TIMESTAMP
        WHERE product_id = :product_id
        """
        return self.execute_command(command, {**self._row_params(data), "product_id": product_id}, conn=conn)

    def delete(self, product_id: int, conn: Optional[Connection] = None) -> int:
        return self.execute_command(
            "DELETE FROM products WHERE product_id = :product_id", {"product_id": product_id}, conn=conn
        )

    @staticmethod
    def _row_params(data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "product_name": data["product_name"],
            "slug": data["slug"],
            "description": data["description"],
            "price_amount": data["price_amount"],
            "currency": data["currency"],
            "image_path": data.get("image_path"),
        }

    # ------------------------------------------------------------------ #
    # Mappings                                                             #
    # ------------------------------------------------------------------ #

    def set_categories(self, product_id: int, category_ids: Iterable[int], conn: Optional[Connection] = None) -> None:
        self.execute_command(
            "DELETE FROM product_category_mapping WHERE product_id = :product_id",
            {"product_id": product_id},
            conn=conn,
        )
        self.execute_batch_command(
            "INSERT INTO product_category_mapping (product_id, category_id) VALUES (:product_id, :category_id)",
            [{"product_id": product_id, "category_id": cid} for cid in dict.fromkeys(category_ids)],
            conn=conn,
        )

    def set_tags(self, product_id: int, tag_ids: Iterable[int], conn: Optional[Connection] = None) -> None:
        self.execute_command(
            "DELETE FROM product_tag_mapping WHERE product_id = :product_id",
            {"product_id": product_id},
            conn=conn,
        )
        self.execute_batch_command(
            "INSERT INTO product_tag_mapping (product_id, tag_id) VALUES (:product_id, :tag_id)",
            [{"product_id": product_id, "tag_id": tid} for tid in dict.fromkeys(tag_ids)],
            conn=conn,
        )

    def categories_for(self, product_ids: List[int]) -> Dict[int, List[Dict[str, Any]]]:
        if not product_ids:
            return {}
        query = """
        SELECT m.product_id, c.category_id, c.category_name
        FROM product_category_mapping m
        JOIN product_categories c ON c.category_id = m.category_id
        WHERE m.product_id IN :ids
        ORDER BY c.category_name
        """
        grouped: Dict[int, List[Dict[str, Any]]] = {pid: [] for pid in product_ids}
        for row in self.execute_query(query, {"ids": list(product_ids)}):
            grouped[row["product_id"]].append(
                {"category_id": row["category_id"], "category_name": row["category_name"]}
            )
        return grouped

    def tags_for(self, product_ids: List[int]) -> Dict[int, List[Dict[str, Any]]]:
        if not product_ids:
            return {}
        query = """
        SELECT m.product_id, t.tag_id, t.tag_name
        FROM product_tag_mapping m
        JOIN tags t ON t.tag_id = m.tag_id
        WHERE m.product_id IN :ids
        ORDER BY t.tag_name
        """
        grouped: Dict[int, List[Dict[str, Any]]] = {pid: [] for pid in product_ids}
        for row in self.execute_query(query, {"ids": list(product_ids)}):
            grouped[row["product_id"]].append({"tag_id": row["tag_id"], "tag_name": row["tag_name"]})
        return grouped


class CategoryRepository(BaseRepository):
    @property
    def table_name(self) -> str:
        return "product_categories"

    @property
    def id_column(self) -> str:
        return "category_id"

    def list_all(self) -> List[Dict[str, Any]]:
        query = """
        SELECT c.category_id, c.category_name, c.description,
               COUNT(m.product_id) AS product_count
        FROM product_categories c
        LEFT JOIN product_category_mapping m ON m.category_id = c.category_id
        GROUP BY c.category_id, c.category_name, c.description
        ORDER BY c.category_name
        """
        return self.execute_query(query)

    def get_by_id(self, category_id: int) -> Optional[Dict[str, Any]]:
        query = "SELECT category_id, category_name, description FROM product_categories WHERE category_id = :id"
        return self.execute_single_query(query, {"id": category_id})

    def get_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        query = """
        SELECT category_id, category_name, description FROM product_categories
        WHERE LOWER(category_name) = :name
        """
        return self.execute_single_query(query, {"name": name.lower()})

    def existing_ids(self, category_ids: List[int], conn: Optional[Connection] = None) -> List[int]:
        if not category_ids:
            return []
        rows = self.execute_query(
            "SELECT category_id FROM product_categories WHERE category_id IN :ids",
            {"ids": list(category_ids)},
            conn=conn,
        )
        return [row["category_id"] for row in rows]

    def create(self, name: str, description: Optional[str]) -> int:
        command = """
        INSERT INTO product_categories (category_name, description)
        VALUES (:name, :description)
        """
        return self.execute_insert_returning_id(command, {"name": name, "description": description})
