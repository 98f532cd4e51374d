import uuid
from decimal import Decimal
from typing import Annotated

from sqlalchemy import JSON, ForeignKey, Numeric, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import uuidpk, created_ts, updated_ts
from .category import Category
from hardware_catalog.db import Base


class Product(Base):
    __tablename__ = "products"

    id: Mapped[uuidpk]
    name: Mapped[Annotated[str, mapped_column(String(100), nullable=False)]]
    price: Mapped[Annotated[Decimal, mapped_column(Numeric(10, 2), nullable=False)]]
    category_id: Mapped[
        Annotated[
            uuid.UUID,
            mapped_column(
                Uuid(as_uuid=True),
                ForeignKey("categories.id", ondelete="RESTRICT"),
                nullable=False,
                index=True,
            ),
        ]
    ]
    images: Mapped[list[str]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        default=list,
        nullable=False,
    )
    created_at: Mapped[created_ts]
    updated_at: Mapped[updated_ts]

    # снимок категории только для чтения, каскада нет
    category: Mapped[Category] = relationship(lazy="raise")
