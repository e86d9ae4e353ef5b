"""
Record types for the demo schema in ``db/init.sql``.

    tablemap sql scripts.models:Product
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field

from tablemap import PrimaryKey, SqlField, SqlType, table


@table("public.fruits")
class Fruit(BaseModel):
    id: Annotated[int, PrimaryKey] = 0
    name: Annotated[str, SqlField(length=64)]


@table("public.products")
class Product(BaseModel):
    prod_id: Annotated[int, PrimaryKey] = 0
    title: Annotated[str, SqlField(length=100)]
    price: Annotated[Decimal, SqlField(precision=10, scale=2)]
    tags: List[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: Annotated[Optional[datetime], SqlField(generated=True)] = None


@table("public.inventory")
class InventoryItem(BaseModel):
    warehouse: Annotated[str, SqlField(primary_key=True, length=32)]
    sku: Annotated[str, SqlField(primary_key=True, length=32)]
    quantity: Annotated[int, SqlField(sql_type=SqlType.INT)]


@table("public.collate")
class Collate(BaseModel):
    id: Annotated[int, SqlField(primary_key=True, sql_type=SqlType.INT)]
    column: bool
    desc: bool
    constraint: Optional[int] = None
    current_user: str
    fetch: str
