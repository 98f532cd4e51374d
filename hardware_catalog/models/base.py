import uuid
from datetime import datetime, timezone
from typing import Annotated

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


uuidpk = Annotated[
    uuid.UUID,
    mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
]

created_ts = Annotated[
    datetime,
    mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
]

updated_ts = Annotated[
    datetime,
    mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
]
