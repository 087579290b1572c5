from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """
    계정 + 자격 증명 레코드.
    - email / username: 저장·조회 전에 항상 소문자로 정규화
    - refresh_token: 마지막으로 발급한 RT 원문 (로그아웃 시 None, 사용자당 세션 1개)
    """
    __tablename__ = "user"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(index=True, unique=True)
    username: str = Field(index=True, unique=True)
    full_name: str
    password_hash: str = Field(nullable=False)
    avatar: str
    cover_image: str = Field(default="")
    refresh_token: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
