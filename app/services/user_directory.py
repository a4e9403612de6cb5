from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import UserNotRegistered
from app.core.logger import mask_phone
from app.models.role import Role
from app.models.user import STATUS_ACTIVE, User

_LOG = logging.getLogger("app.users")

POLICY_PROVISION = "provision"
POLICY_REJECT = "reject"
SUPPORTED_POLICIES = {POLICY_PROVISION, POLICY_REJECT}

# users.phone_number and otp_tokens.phone_number are VARCHAR(20)
MAX_PHONE_LENGTH = 20


def normalize_phone(raw: str | None) -> str:
    phone = str(raw or "").strip()
    if not phone:
        return ""
    return "".join(ch for ch in phone if ch.isdigit() or ch == "+")


def unknown_phone_policy() -> str:
    policy = str(settings.AUTH_UNKNOWN_PHONE_POLICY or "").strip().lower()
    if policy not in SUPPORTED_POLICIES:
        return POLICY_PROVISION
    return policy


def get_user_by_phone(db: Session, phone_number: str) -> User | None:
    if not phone_number:
        return None
    return db.query(User).filter(User.phone_number == phone_number).first()


def get_or_create_role(db: Session, name: str) -> Role:
    role = db.query(Role).filter(Role.name == name).first()
    if role is not None:
        return role
    role = Role(name=name, description=f"{name.title()} role")
    db.add(role)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return db.query(Role).filter(Role.name == name).one()
    db.refresh(role)
    return role


def resolve_user_for_login(db: Session, phone_number: str) -> User:
    """Find the user owning ``phone_number`` or apply the unknown-phone policy.

    Under ``provision`` a minimal active user with the default role is created.
    Under ``reject`` :class:`UserNotRegistered` is raised.
    """
    user = get_user_by_phone(db, phone_number)
    if user is not None:
        return user

    if unknown_phone_policy() == POLICY_REJECT:
        _LOG.info("Login rejected for unregistered phone=%s", mask_phone(phone_number))
        raise UserNotRegistered()

    role = get_or_create_role(db, str(settings.AUTH_DEFAULT_ROLE or "USER").strip().upper())
    user = User(phone_number=phone_number, status=STATUS_ACTIVE, role_id=role.id)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # concurrent first login for the same phone number
        db.rollback()
        return db.query(User).filter(User.phone_number == phone_number).one()
    db.refresh(user)
    _LOG.info("Provisioned user id=%s phone=%s role=%s", user.id, mask_phone(phone_number), role.name)
    return user
