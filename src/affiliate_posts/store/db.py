from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..domain.models import BlogPost, Product, Settings, Template
from ..domain.normalize import new_id, utc_now_iso
from ..errors import NotFoundError, StorageError, ValidationError
from ..logging import get_logger
from ..paths import expand_abs, find_project_root, var_dir
from .constants import ADDED_COLUMNS, DEFAULT_TEMPLATES, SETTINGS_KEY


LOG = get_logger("store-db")


DEFAULT_DB_FOLDER = "store"
DEFAULT_DB_FILENAME = "records.sqlite3"


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS settings (
  key    TEXT PRIMARY KEY,
  value  TEXT
);

CREATE TABLE IF NOT EXISTS posts (
  id                   TEXT PRIMARY KEY,
  name                 TEXT,
  title                TEXT NOT NULL,
  content              TEXT NOT NULL,
  products             TEXT,            -- JSON array (product snapshot)
  createdAt            TEXT NOT NULL,
  heroImageUrl         TEXT,
  tags                 TEXT,            -- JSON array of strings
  asins                TEXT,
  labels               TEXT,
  metaDescription      TEXT,
  socialMediaSnippets  TEXT
);

CREATE TABLE IF NOT EXISTS templates (
  id      TEXT PRIMARY KEY,
  name    TEXT NOT NULL,
  prompt  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS products (
  id             TEXT PRIMARY KEY,
  name           TEXT NOT NULL,
  title          TEXT,
  productUrl     TEXT UNIQUE,           -- NULL when the product has no source URL
  imageUrl       TEXT,
  price          TEXT,
  description    TEXT,
  otherInfo      TEXT,
  brand          TEXT,
  affiliateLink  TEXT,
  category       TEXT,
  tags           TEXT,                  -- JSON array of strings
  createdAt      TEXT,
  updatedAt      TEXT
);

CREATE INDEX IF NOT EXISTS idx_posts_created      ON posts(createdAt);
CREATE INDEX IF NOT EXISTS idx_products_category  ON products(category);
CREATE INDEX IF NOT EXISTS idx_products_updated   ON products(updatedAt);
"""

POST_LIST_COLUMNS = (
    "id, name, title, createdAt, products, tags, heroImageUrl, asins, labels, metaDescription, socialMediaSnippets"
)


def _escape_like(term: str) -> str:
    """Make `term` match literally inside a LIKE pattern using ESCAPE '\\'."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class RecordStore:
    """SQLite-backed store for settings, posts, templates and products.

    - Places the file under `<repo-root>/var/store/records.sqlite3` unless
      `db_path` is given.
    - Ensures schema, additive column migrations and default templates on
      construction.
    - Every operation opens its own connection and runs one statement; no
      transaction spans several entities.
    """

    def __init__(self, root_dir: Optional[str] = None, *, db_path: Optional[str] = None) -> None:
        if db_path:
            path = expand_abs(db_path)
        else:
            root = find_project_root(root_dir)
            path = os.path.join(var_dir(root), DEFAULT_DB_FOLDER, DEFAULT_DB_FILENAME)
        folder = os.path.dirname(path)
        try:
            os.makedirs(folder, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create data directory {folder}: {exc}") from exc
        self.db_path = path
        LOG.info(f"Record store path: {self.db_path}")
        self._ensure_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open record store: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.DatabaseError as exc:
            LOG.error("Record store statement failed: %s", exc)
            raise StorageError(f"Record store error: {exc}") from exc
        finally:
            conn.close()

    # ---------- schema ----------
    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            cur = conn.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL;")
                cur.execute("PRAGMA synchronous=NORMAL;")
            except sqlite3.OperationalError:
                # Non-fatal; continue with schema creation
                pass
            LOG.debug("Ensuring record store schema is present")
            cur.executescript(SCHEMA_SQL)
            self._add_missing_columns(conn)
            self._seed_templates(conn)
            conn.commit()
            LOG.info("Record store schema ensured.")

    def _add_missing_columns(self, conn: sqlite3.Connection) -> None:
        """Add columns introduced after a store file was first created."""
        cur = conn.cursor()
        for table, columns in ADDED_COLUMNS.items():
            cur.execute(f"PRAGMA table_info({table});")
            present = {row[1] for row in cur.fetchall()}
            for column, sql_type in columns.items():
                if column in present:
                    continue
                LOG.info("Migrating %s: adding missing column %s", table, column)
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {column} {sql_type};")

    def _seed_templates(self, conn: sqlite3.Connection) -> None:
        cur = conn.cursor()
        cur.execute("SELECT COUNT(*) FROM templates;")
        if cur.fetchone()[0]:
            LOG.debug("Templates table already has data; skipping seed.")
            return
        cur.executemany(
            "INSERT INTO templates (id, name, prompt) VALUES (?, ?, ?);",
            [(new_id(), name, prompt) for name, prompt in DEFAULT_TEMPLATES],
        )
        LOG.info("Seeded %d default templates.", len(DEFAULT_TEMPLATES))

    # ---------- json helpers ----------
    @staticmethod
    def _decode_list(raw: Optional[str], *, column: str, record_id: str) -> List[Any]:
        if not raw:
            return []
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as exc:
            LOG.error("Corrupt %s JSON for record %s: %r", column, record_id, raw[:200])
            raise StorageError(f"Data integrity issue: failed to parse {column} for record {record_id}") from exc
        if not isinstance(value, list):
            raise StorageError(f"Data integrity issue: {column} for record {record_id} is not a list")
        return value

    # ---------- settings ----------
    def get_settings(self) -> Settings:
        with self.connect() as conn:
            row = conn.execute("SELECT value FROM settings WHERE key = ?;", (SETTINGS_KEY,)).fetchone()
        if row is None or not row["value"]:
            return Settings()
        try:
            saved = json.loads(row["value"])
        except json.JSONDecodeError as exc:
            raise StorageError("Data integrity issue: stored settings are not valid JSON") from exc
        if not isinstance(saved, dict):
            raise StorageError("Data integrity issue: stored settings are not an object")
        return Settings.from_dict(saved)

    def save_settings(self, settings: Settings) -> Settings:
        payload = json.dumps(settings.as_dict(mask_api_key=False), ensure_ascii=False)
        with self.connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?);",
                (SETTINGS_KEY, payload),
            )
            conn.commit()
        LOG.info("Settings saved.")
        return settings

    # ---------- posts ----------
    def _row_to_post(self, row: sqlite3.Row) -> BlogPost:
        data = dict(row)
        data["products"] = self._decode_list(data.get("products"), column="products", record_id=data["id"])
        data["tags"] = self._decode_list(data.get("tags"), column="tags", record_id=data["id"])
        post = BlogPost.from_dict(data)
        # Keep the snapshot exactly as stored.
        post.products = [p for p in data["products"] if isinstance(p, dict)]
        return post

    def list_posts(self) -> List[BlogPost]:
        with self.connect() as conn:
            rows = conn.execute(
                f"SELECT {POST_LIST_COLUMNS} FROM posts ORDER BY createdAt DESC, rowid DESC;"
            ).fetchall()
        return [self._row_to_post(r) for r in rows]

    def get_post(self, post_id: str) -> Optional[BlogPost]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM posts WHERE id = ?;", (post_id,)).fetchone()
        return self._row_to_post(row) if row is not None else None

    def save_post(self, data: Dict[str, Any]) -> BlogPost:
        """Insert when `data` has no id, otherwise update the existing post."""
        post = BlogPost.from_dict(data)
        is_update = bool(post.id)
        if is_update:
            existing = self.get_post(post.id)
            if existing is None:
                raise NotFoundError("Post not found")
            post.created_at = post.created_at or existing.created_at
            if "products" not in data:
                post.products = existing.products
        else:
            post.id = new_id()
            post.created_at = utc_now_iso()
        post.name = post.name or "New Post"
        post.title = post.title or "Untitled Post"

        values = (
            post.name,
            post.title,
            post.content,
            json.dumps(post.products, ensure_ascii=False),
            post.created_at,
            post.hero_image_url,
            json.dumps(post.tags, ensure_ascii=False),
            post.asins,
            post.labels,
            post.meta_description,
            post.social_media_snippets,
            post.id,
        )
        with self.connect() as conn:
            if is_update:
                cur = conn.execute(
                    """
                    UPDATE posts SET name = ?, title = ?, content = ?, products = ?, createdAt = ?,
                      heroImageUrl = ?, tags = ?, asins = ?, labels = ?, metaDescription = ?,
                      socialMediaSnippets = ?
                    WHERE id = ?;
                    """,
                    values,
                )
                if cur.rowcount == 0:
                    raise NotFoundError("Post not found")
            else:
                conn.execute(
                    """
                    INSERT INTO posts (name, title, content, products, createdAt, heroImageUrl, tags,
                      asins, labels, metaDescription, socialMediaSnippets, id)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    values,
                )
            conn.commit()
        LOG.debug("Saved post id=%s title=%r", post.id, post.title)
        return post

    def delete_post(self, post_id: str) -> bool:
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM posts WHERE id = ?;", (post_id,))
            conn.commit()
            deleted = cur.rowcount
        return deleted > 0

    def delete_posts(self, ids: Sequence[str]) -> int:
        return self._delete_many("posts", ids)

    def _delete_many(self, table: str, ids: Sequence[str]) -> int:
        ids = [str(i) for i in ids if i]
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        with self.connect() as conn:
            cur = conn.execute(f"DELETE FROM {table} WHERE id IN ({placeholders});", ids)
            conn.commit()
            deleted = cur.rowcount
        LOG.info("Bulk deleted %d %s.", deleted, table)
        return deleted

    # ---------- templates ----------
    def list_templates(self) -> List[Template]:
        with self.connect() as conn:
            rows = conn.execute("SELECT id, name, prompt FROM templates ORDER BY name;").fetchall()
        return [Template.from_dict(dict(r)) for r in rows]

    def get_template(self, template_id: str) -> Optional[Template]:
        with self.connect() as conn:
            row = conn.execute("SELECT id, name, prompt FROM templates WHERE id = ?;", (template_id,)).fetchone()
        return Template.from_dict(dict(row)) if row is not None else None

    def save_template(self, data: Dict[str, Any]) -> Template:
        template = Template.from_dict(data)
        if not template.name:
            raise ValidationError("Template name is required")
        if not template.prompt.strip():
            raise ValidationError("Template prompt is required")
        with self.connect() as conn:
            if template.id:
                cur = conn.execute(
                    "UPDATE templates SET name = ?, prompt = ? WHERE id = ?;",
                    (template.name, template.prompt, template.id),
                )
                if cur.rowcount == 0:
                    raise NotFoundError("Template not found")
            else:
                template.id = new_id()
                conn.execute(
                    "INSERT INTO templates (id, name, prompt) VALUES (?, ?, ?);",
                    (template.id, template.name, template.prompt),
                )
            conn.commit()
        return template

    def delete_template(self, template_id: str) -> bool:
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM templates WHERE id = ?;", (template_id,))
            conn.commit()
            deleted = cur.rowcount
        return deleted > 0

    # ---------- products ----------
    def _row_to_product(self, row: sqlite3.Row) -> Product:
        data = dict(row)
        data["tags"] = self._decode_list(data.get("tags"), column="tags", record_id=data["id"])
        return Product.from_dict(data)

    def list_products(self, *, search: Optional[str] = None, category: Optional[str] = None) -> List[Product]:
        query = "SELECT * FROM products"
        params: List[Any] = []
        conditions: List[str] = []
        if search:
            conditions.append(
                "(name LIKE ? ESCAPE '\\' OR title LIKE ? ESCAPE '\\' OR brand LIKE ? ESCAPE '\\'"
                " OR EXISTS (SELECT 1 FROM json_each(COALESCE(NULLIF(products.tags, ''), '[]'))"
                " WHERE value LIKE ? ESCAPE '\\'))"
            )
            like = f"%{_escape_like(search)}%"
            params.extend([like, like, like, like])
        if category:
            conditions.append("category = ?")
            params.append(category)
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY updatedAt DESC, rowid DESC;"
        with self.connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_product(r) for r in rows]

    def list_categories(self) -> List[str]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT category FROM products WHERE category IS NOT NULL AND category != '' ORDER BY category;"
            ).fetchall()
        return [r["category"] for r in rows]

    def get_product(self, product_id: str) -> Optional[Product]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM products WHERE id = ?;", (product_id,)).fetchone()
        return self._row_to_product(row) if row is not None else None

    def get_product_by_url(self, product_url: str) -> Optional[Product]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM products WHERE productUrl = ?;", (product_url,)).fetchone()
        return self._row_to_product(row) if row is not None else None

    @staticmethod
    def _product_values(product: Product) -> tuple:
        return (
            product.name,
            product.title,
            product.product_url,
            product.image_url,
            product.price,
            product.description,
            product.other_info,
            product.brand,
            product.affiliate_link,
            product.category,
            json.dumps(product.tags, ensure_ascii=False),
            product.updated_at,
        )

    def create_product(self, data: Dict[str, Any]) -> Product:
        product = Product.from_dict(data)
        product.name = product.name or product.title
        if not product.name:
            raise ValidationError("Product name is required")
        product.id = new_id()
        product.created_at = product.updated_at = utc_now_iso()
        try:
            with self.connect() as conn:
                conn.execute(
                    """
                    INSERT INTO products (name, title, productUrl, imageUrl, price, description, otherInfo,
                      brand, affiliateLink, category, tags, updatedAt, id, createdAt)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    self._product_values(product) + (product.id, product.created_at),
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            raise ValidationError(f"A product with URL {product.product_url} already exists") from exc
        LOG.info("Created product id=%s name=%r", product.id, product.name)
        return product

    def update_product(self, product_id: str, data: Dict[str, Any]) -> Product:
        existing = self.get_product(product_id)
        if existing is None:
            raise NotFoundError("Product not found")
        product = existing.merged(data)
        if not product.name:
            raise ValidationError("Product name is required")
        product.updated_at = utc_now_iso()
        try:
            with self.connect() as conn:
                conn.execute(
                    """
                    UPDATE products SET name = ?, title = ?, productUrl = ?, imageUrl = ?, price = ?,
                      description = ?, otherInfo = ?, brand = ?, affiliateLink = ?, category = ?, tags = ?,
                      updatedAt = ?
                    WHERE id = ?;
                    """,
                    self._product_values(product) + (product_id,),
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            raise ValidationError(f"A product with URL {product.product_url} already exists") from exc
        LOG.debug("Updated product id=%s", product_id)
        return product

    def delete_product(self, product_id: str) -> bool:
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM products WHERE id = ?;", (product_id,))
            conn.commit()
            deleted = cur.rowcount
        if deleted == 0:
            LOG.warning("Attempted to delete non-existent product with id %s", product_id)
        return deleted > 0

    def delete_products(self, ids: Sequence[str]) -> int:
        return self._delete_many("products", ids)

    def upsert_product_from_fetch(self, fetched: Dict[str, Any]) -> Product:
        """Refresh the product stored under `productUrl` or create it.

        A user-customized internal name survives a refresh; a name that still
        equals the old title follows the new one.
        """
        product_url = (fetched.get("productUrl") or "").strip()
        if not product_url:
            raise ValidationError("productUrl is required")
        title = (fetched.get("title") or "").strip()
        existing = self.get_product_by_url(product_url)
        if existing is None:
            return self.create_product(
                {
                    "name": title,
                    "title": title,
                    "brand": fetched.get("brand"),
                    "productUrl": product_url,
                    "imageUrl": fetched.get("imageUrl"),
                    "price": fetched.get("price"),
                    "description": fetched.get("description"),
                    "tags": [],
                }
            )
        patch: Dict[str, Any] = {}
        for key in ("title", "price", "description", "imageUrl", "brand"):
            value = fetched.get(key)
            if isinstance(value, str) and value.strip():
                patch[key] = value
        if title and (not existing.name or existing.name == existing.title):
            patch["name"] = title
        return self.update_product(existing.id or "", patch)
