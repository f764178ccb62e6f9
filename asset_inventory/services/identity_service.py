from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from asset_inventory.domain.errors import (
    AuthError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ReferentialConflictError,
    ValidationError,
)
from asset_inventory.domain.models import (
    Asset,
    BootstrapAdminRequest,
    SignupRequest,
    SystemFlag,
    User,
)
from asset_inventory.domain.permissions import PERM_IDENTITY_ADMIN, Actor, UserRole
from asset_inventory.infra.auth import hash_password, verify_password
from asset_inventory.infra.db import commit_or_raise, get_engine

logger = logging.getLogger(__name__)

ADMIN_BOOTSTRAP_FLAG = "admin_bootstrapped"


def normalize_email(raw_email: str) -> str:
    email = raw_email.strip().lower()
    local, _, domain = email.partition("@")
    if not local or "." not in domain:
        raise ValidationError("invalid email address")
    return email


class IdentityService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _require_admin(self, actor: Actor) -> None:
        if not actor.can(PERM_IDENTITY_ADMIN):
            raise ForbiddenError("administrator role required")

    def _get_user(self, session: Session, user_id: str) -> User:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user

    def _create_user(
        self,
        session: Session,
        *,
        email: str,
        password: str,
        full_name: str | None,
        role: UserRole,
        flag: SystemFlag | None = None,
    ) -> User:
        user = User(
            email=normalize_email(email),
            full_name=(full_name or "").strip() or None,
            role=role,
            password_hash=hash_password(password),
        )
        session.add(user)
        if flag is not None:
            session.add(flag)
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            if flag is not None and session.get(SystemFlag, flag.name) is not None:
                raise ConflictError("an administrator already exists") from exc
            raise ConflictError("this email is already registered") from exc
        session.refresh(user)
        return user

    def signup(self, payload: SignupRequest) -> User:
        with self._session() as session:
            user = self._create_user(
                session,
                email=payload.email,
                password=payload.password,
                full_name=payload.full_name,
                role=UserRole.USER,
            )
        logger.info("user signed up", extra={"actor_id": user.id})
        return user

    def bootstrap_admin(self, payload: BootstrapAdminRequest) -> User:
        with self._session() as session:
            existing = session.exec(select(User).where(User.role == UserRole.ADMIN)).first()
            if existing is not None:
                raise ConflictError("an administrator already exists")
            user = self._create_user(
                session,
                email=payload.email,
                password=payload.password,
                full_name=payload.full_name,
                role=UserRole.ADMIN,
                # Unique per database, so a concurrent second bootstrap fails on commit.
                flag=SystemFlag(name=ADMIN_BOOTSTRAP_FLAG),
            )
        logger.info("bootstrap administrator created", extra={"actor_id": user.id})
        return user

    def login(self, email: str, password: str) -> User:
        with self._session() as session:
            statement = select(User).where(User.email == email.strip().lower())
            user = session.exec(statement).first()
        if user is None or not verify_password(password, user.password_hash):
            raise AuthError("invalid login credentials")
        return user

    def get_profile(self, user_id: str) -> User:
        with self._session() as session:
            return self._get_user(session, user_id)

    def list_users(self, actor: Actor) -> list[User]:
        self._require_admin(actor)
        with self._session() as session:
            statement = select(User).order_by(col(User.created_at).desc())
            return list(session.exec(statement).all())

    def update_role(self, actor: Actor, user_id: str, role: UserRole) -> User:
        self._require_admin(actor)
        if user_id == actor.user_id:
            raise ForbiddenError("administrators cannot change their own role")
        with self._session() as session:
            user = self._get_user(session, user_id)
            user.role = role
            session.add(user)
            commit_or_raise(session)
            session.refresh(user)
        logger.info("user role changed to %s", role, extra={"actor_id": actor.user_id})
        return user

    def delete_user(self, actor: Actor, user_id: str) -> None:
        self._require_admin(actor)
        if user_id == actor.user_id:
            raise ForbiddenError("administrators cannot delete their own account")
        with self._session() as session:
            user = self._get_user(session, user_id)
            owned = session.exec(
                select(func.count()).select_from(Asset).where(Asset.created_by == user_id)
            ).one()
            if owned:
                raise ReferentialConflictError(
                    f"cannot delete {user.email}: the user owns {owned} asset(s)"
                )
            session.delete(user)
            commit_or_raise(session)
        logger.info("user deleted", extra={"actor_id": actor.user_id})
