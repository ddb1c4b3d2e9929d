# backend/noticeboard/api/users.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .deps import get_current_actor
from ..config import settings
from ..database import get_db
from ..exceptions import ForbiddenError, NotFoundError, PortalError, ValidationFailedError
from ..models.user import User, UserRole
from ..schemas.user import User as UserSchema, UserList, UserUpdate
from ..services.visibility import Actor
from ..utils.logging import api_logger

router = APIRouter(prefix="/api/users", tags=["users"])


def _search_filter(query, search: Optional[str]):
    if not search:
        return query
    pattern = f"%{search}%"
    return query.filter(or_(
        User.name.ilike(pattern),
        User.email.ilike(pattern),
        User.student_id.ilike(pattern)
    ))


def _page(query, page: int, limit: int) -> UserList:
    total = query.count()
    users = query.order_by(User.created_at.desc(), User.id.desc()) \
        .offset((page - 1) * limit) \
        .limit(limit) \
        .all()
    return UserList(
        count=len(users),
        total=total,
        users=[UserSchema.model_validate(user) for user in users]
    )


def _load_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        api_logger.warning("User not found", extra={"user_id": user_id})
        raise NotFoundError("User not found")
    return user


@router.get("", response_model=UserList)
async def list_users(
        role: Optional[UserRole] = None,
        search: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    """List all users (admin only)"""
    if not actor.is_admin:
        raise ForbiddenError("Not authorized to list users")

    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    result = _page(_search_filter(query, search), page, limit)

    api_logger.info(f"Found {result.total} users", extra={"role": role.value if role else None})
    return result


@router.get("/students", response_model=UserList)
async def list_students(
        department: Optional[str] = None,
        search: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=settings.MAX_PAGE_LIMIT),
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    """Students visible to faculty (own department only) and admins"""
    if actor.role not in (UserRole.ADMIN, UserRole.FACULTY):
        raise ForbiddenError("Not authorized to list students")

    query = db.query(User).filter(User.role == UserRole.STUDENT)
    if actor.is_faculty and actor.department:
        query = query.filter(User.department == actor.department)
    elif actor.is_admin and department:
        query = query.filter(User.department == department)

    return _page(_search_filter(query, search), page, limit)


@router.get("/{user_id}", response_model=UserSchema)
async def get_user(
        user_id: int,
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    user = _load_user(db, user_id)

    if actor.id != user.id and not actor.is_admin:
        # Faculty may look up students; students only themselves
        if not (actor.is_faculty and user.role == UserRole.STUDENT):
            raise ForbiddenError("Not authorized to view this user")
    return user


@router.put("/{user_id}", response_model=UserSchema)
async def update_user(
        user_id: int,
        update: UserUpdate,
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    api_logger.info("Updating user", extra={
        "user_id": user_id,
        "actor_id": actor.id,
        "update_fields": list(update.model_dump(exclude_unset=True).keys())
    })

    try:
        user = _load_user(db, user_id)
        if not actor.is_admin and actor.id != user.id:
            raise ForbiddenError("Not authorized to update this user")

        changes = update.model_dump(exclude_unset=True)
        if not actor.is_admin:
            changes.pop("role", None)
            changes.pop("is_active", None)

        email = changes.get("email")
        if email and email != user.email:
            taken = db.query(User).filter(User.email == email, User.id != user.id).first()
            if taken:
                raise ValidationFailedError("Email already in use")

        for field, value in changes.items():
            if field in ("name", "email", "role", "is_active") and value is None:
                continue
            setattr(user, field, value)

        db.commit()
        db.refresh(user)
        api_logger.info("User updated successfully", extra={"user_id": user_id})
        return user

    except PortalError:
        raise
    except Exception as e:
        api_logger.error("Failed to update user", extra={"user_id": user_id, "error": str(e)})
        db.rollback()
        raise


@router.delete("/{user_id}")
async def delete_user(
        user_id: int,
        actor: Actor = Depends(get_current_actor),
        db: Session = Depends(get_db)
):
    """Deactivate a user; their documents and notices keep referencing them"""
    if not actor.is_admin:
        raise ForbiddenError("Not authorized to delete users")

    try:
        user = _load_user(db, user_id)
        user.is_active = False
        db.commit()

        api_logger.info(f"Deactivated user {user_id}")
        return {"success": True}

    except PortalError:
        raise
    except Exception as e:
        db.rollback()
        api_logger.error(f"Failed to deactivate user: {str(e)}")
        raise
