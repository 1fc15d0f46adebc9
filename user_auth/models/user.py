"""User record model."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class User(BaseModel):
    """A registered account, including its single refresh-token slot.

    ``refresh_token_hash`` and ``refresh_token_expires_at`` are either both
    set or both None.
    """

    id: UUID
    email: str
    username: str
    first_name: str = ""
    last_name: str = ""
    gender: str = ""
    refresh_token_hash: Optional[str] = None
    refresh_token_expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
