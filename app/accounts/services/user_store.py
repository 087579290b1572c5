from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.accounts.core.errors import ConflictError, ValidationError
from app.accounts.models.user import User

log = logging.getLogger(__name__)

# update_fields로 바꿀 수 있는 컬럼 (refresh_token / password_hash는 전용 메서드로만)
UPDATABLE_FIELDS = {"email", "username", "full_name", "avatar", "cover_image"}
_REQUIRED_FIELDS = ("email", "username", "full_name", "password_hash", "avatar")


class UserStore:
    """
    Credential Store over a SQLModel session.
    Every write is a single committed transaction; there is no cross-call locking.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---- 조회 ----
    def find_by_id(self, user_id: UUID) -> Optional[User]:
        return self.db.get(User, user_id)

    def find_by_email_or_username(
        self, email: Optional[str] = None, username: Optional[str] = None
    ) -> Optional[User]:
        conds = []
        if email:
            conds.append(User.email == email.strip().lower())
        if username:
            conds.append(User.username == username.strip().lower())
        if not conds:
            return None
        return self.db.exec(select(User).where(or_(*conds))).first()

    def find_by_username(self, username: str) -> Optional[User]:
        return self.db.exec(
            select(User).where(User.username == username.strip().lower())
        ).first()

    # ---- 생성 ----
    def create(self, **fields: Any) -> User:
        missing = [k for k in _REQUIRED_FIELDS if not str(fields.get(k) or "").strip()]
        if missing:
            raise ValidationError("All fields are required", [{"field": k} for k in missing])

        fields["email"] = fields["email"].strip().lower()
        fields["username"] = fields["username"].strip().lower()
        user = User(**fields)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("User already exists") from exc
        self.db.refresh(user)
        log.info("user created id=%s username=%s", user.id, user.username)
        return user

    # ---- 갱신 ----
    def _save(self, user: User) -> User:
        user.updated_at = datetime.now(timezone.utc)
        self.db.add(user)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(user)
        return user

    def update_refresh_token(self, user_id: UUID, token: Optional[str]) -> bool:
        user = self.find_by_id(user_id)
        if user is None:
            return False
        user.refresh_token = token
        self._save(user)
        return True

    def update_password_hash(self, user_id: UUID, password_hash: str) -> bool:
        if not password_hash:
            raise ValidationError("Password is required")
        user = self.find_by_id(user_id)
        if user is None:
            return False
        user.password_hash = password_hash
        self._save(user)
        return True

    def update_fields(self, user_id: UUID, fields: dict[str, Any]) -> Optional[User]:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")
        user = self.find_by_id(user_id)
        if user is None:
            return None
        for key, value in fields.items():
            if key in ("email", "username"):
                value = value.strip().lower()
            setattr(user, key, value)
        try:
            return self._save(user)
        except IntegrityError as exc:
            raise ConflictError("Email or username already in use") from exc
