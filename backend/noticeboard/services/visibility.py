# backend/noticeboard/services/visibility.py
"""
Visibility policy for documents and notices.

Every function here is a pure predicate over an actor and an already loaded
record. Nothing touches the session and nothing raises for well-formed input,
so the same rules back listings, single fetches, downloads and mutations.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..models.document import Document
from ..models.notice import Notice
from ..models.user import User, UserRole

ALL_ROLES = "all"


@dataclass(frozen=True)
class Actor:
    """Already authenticated identity performing an operation"""
    id: int
    role: UserRole
    department: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, role=UserRole(user.role), department=user.department or None)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_faculty(self) -> bool:
        return self.role == UserRole.FACULTY


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _role_name(role) -> str:
    return role.value if isinstance(role, UserRole) else str(role)


def _role_allowed(allowed: Optional[Iterable[str]], role: UserRole) -> bool:
    allowed = {_role_name(entry).lower() for entry in (allowed or [])}
    return _role_name(role) in allowed or ALL_ROLES in allowed


def _same_department(item_department: Optional[str], actor_department: Optional[str]) -> bool:
    """Department gate for faculty-owned content; unset on either side passes"""
    if not item_department or not actor_department:
        return True
    return item_department == actor_department


def is_expired(notice: Notice, now: Optional[datetime] = None) -> bool:
    if notice.expiry_date is None:
        return False
    now = _as_utc(now or utcnow())
    return _as_utc(notice.expiry_date) < now


def can_see_document(actor: Actor, document: Document) -> bool:
    if not document.is_active:
        return False
    if not _role_allowed(document.access_level, actor.role):
        return False
    if actor.is_admin:
        return True

    owner = document.owner
    if owner is None:
        return False
    if owner.role == UserRole.ADMIN:
        return True
    if owner.role == UserRole.FACULTY:
        return _same_department(document.department, actor.department)
    return True


def can_download_document(actor: Actor, document: Document) -> bool:
    """Downloads follow the visibility decision; file existence is checked by the caller"""
    return can_see_document(actor, document)


def can_see_notice(actor: Actor, notice: Notice) -> bool:
    if not notice.is_active:
        return False
    if notice.owner_id == actor.id:
        return True
    if actor.is_admin:
        return True
    if not _role_allowed(notice.target_audience, actor.role):
        return False

    owner = notice.owner
    if owner is None:
        return False
    if owner.role == UserRole.ADMIN:
        return True
    if owner.role == UserRole.FACULTY:
        return _same_department(notice.department, actor.department)
    return True


def is_listable_notice(actor: Actor, notice: Notice, now: Optional[datetime] = None) -> bool:
    """Expiry is a hard filter applied before the visibility decision"""
    if is_expired(notice, now):
        return False
    return can_see_notice(actor, notice)


def can_publish(actor: Actor) -> bool:
    return actor.role in (UserRole.ADMIN, UserRole.FACULTY)


def can_modify_document(actor: Actor, document: Document) -> bool:
    if actor.is_admin:
        return True
    return actor.is_faculty and document.owner_id == actor.id


def can_modify_notice(actor: Actor, notice: Notice) -> bool:
    if actor.is_admin:
        return True
    return actor.is_faculty and notice.owner_id == actor.id


def can_delete_notice(actor: Actor, notice: Notice) -> bool:
    if actor.is_admin:
        return True
    if not actor.is_faculty or notice.owner_id != actor.id:
        return False
    # Guards against role changes after the notice was posted
    return notice.owner is None or notice.owner.role != UserRole.ADMIN
