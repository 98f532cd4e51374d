from typing import Annotated

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import uuidpk, created_ts
from hardware_catalog.db import Base


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[uuidpk]
    name: Mapped[Annotated[str, mapped_column(String(50), nullable=False, unique=True)]]
    created_at: Mapped[created_ts]
