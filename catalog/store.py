"""
catalog/store.py -- SQLAlchemy-backed persistence for the product catalog.

Uses SQLAlchemy Core (not ORM) so the dataclass in catalog/models.py remains
the authoritative domain representation.

Pattern: Repository + Data Mapper. ProductStore is the repository; _row_to_product
is the mapper. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ProductStore()                               # SQLite default
    store = ProductStore("postgresql://user:pw@host/db") # PostgreSQL
    product_id = store.create_product(product)
    store.list_products(category="home")
    store.update_product(product_id, owner_id, price=1200)
    store.close()
"""

from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from catalog.models import Product
from core.db import make_engine, now_iso

_metadata = MetaData()

_products = Table(
    "products",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", String(36), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("price", Integer, nullable=False),
    Column("category", String(100), nullable=False),
    Column("condition", String(20), nullable=False),
    Column("image_url", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# Columns a seller may change after listing. owner_id and timestamps are not among them.
_UPDATABLE = frozenset({"name", "description", "price", "category", "condition", "image_url"})


class ProductStore:
    """Repository for Product records."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = make_engine(db_url, _metadata)

    def create_product(self, product: Product) -> int:
        """Insert a product and return its assigned ID."""
        now = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _products.insert().values(
                    owner_id=product.owner_id,
                    name=product.name,
                    description=product.description,
                    price=product.price,
                    category=product.category,
                    condition=product.condition,
                    image_url=product.image_url,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_product(self, product_id: int) -> Optional[Product]:
        with self.engine.connect() as conn:
            row = conn.execute(_products.select().where(_products.c.id == product_id)).fetchone()
        return _row_to_product(row) if row is not None else None

    def list_products(self, category: Optional[str] = None) -> list[Product]:
        """Return all products, newest first, optionally only one category."""
        query = _products.select()
        if category:
            query = query.where(_products.c.category == category)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_products.c.id.desc())).fetchall()
        return [_row_to_product(r) for r in rows]

    def list_by_owner(self, owner_id: str) -> list[Product]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _products.select().where(_products.c.owner_id == owner_id).order_by(_products.c.id.desc())
            ).fetchall()
        return [_row_to_product(r) for r in rows]

    def update_product(self, product_id: int, owner_id: str, **fields) -> bool:
        """Update the given columns of a product owned by owner_id.

        Same ownership rule as delete_product(): the owner is part of the
        WHERE clause. Only keys in _UPDATABLE are written. Returns True if a
        row was updated, False if not found or owned by someone else.
        """
        values = {k: v for k, v in fields.items() if k in _UPDATABLE}
        values["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _products.update()
                .where((_products.c.id == product_id) & (_products.c.owner_id == owner_id))
                .values(**values)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_product(self, product_id: int, owner_id: str) -> bool:
        """Delete a product owned by owner_id.

        Both conditions are in the WHERE clause, so a caller cannot delete
        another seller's listing by guessing its ID. Returns True if a row was
        deleted, False if not found or owned by someone else.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _products.delete().where((_products.c.id == product_id) & (_products.c.owner_id == owner_id))
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_product(row) -> Product:
    return Product(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        description=row.description,
        price=row.price,
        category=row.category,
        condition=row.condition,
        image_url=row.image_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
