import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class CategoryBase(BaseModel):
    name: str


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(CategoryBase):
    pass


class CategoryRead(CategoryBase):
    id: uuid.UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CategoryRef(BaseModel):
    """Read-only `{id, name}` snapshot of a category inlined into product reads."""

    id: uuid.UUID
    name: str

    model_config = ConfigDict(from_attributes=True)
