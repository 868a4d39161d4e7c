from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Optional, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

import settings
from synergysphere.models.session import Session
from synergysphere.models.user import User
from synergysphere.repository import Repository, Collection
from synergysphere.schemas import RegisterRequest
from synergysphere.util.common import utc_now
from synergysphere.util.exceptions import AppError, AuthenticationException, ValidationException

logger = logging.getLogger(__name__)

db = Repository.get_instance(**settings.MONGO_CONN)

ACCESS = 'access'
REFRESH = 'refresh'


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def check_password(user: User, password: str) -> bool:
    return check_password_hash(user.password, password)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def register(payload: RegisterRequest) -> Tuple[User, dict]:
    if db.find_one(Collection.USER, email=payload.email) is not None:
        raise ValidationException('User with this email already exists')

    user = User(_id=None,
                name=payload.name,
                email=payload.email,
                password=hash_password(payload.password),
                emailVerificationToken=secrets.token_hex(32))
    created = db.insert(Collection.USER, user, return_type=User)
    logger.info('Registered user %s', created.id)
    return created, issue_tokens(created.id)


def login(email: str, password: str, remember_me: bool = False) -> Tuple[User, dict]:
    user = db.find_one(Collection.USER, User, email=email)
    if user is None:
        raise AuthenticationException('Invalid email or password')
    if not user.isActive:
        raise AuthenticationException('Account is deactivated. Please contact support.')
    if not check_password(user, password):
        logger.info('Failed login for user %s', user.id)
        raise AuthenticationException('Invalid email or password')

    now = utc_now()
    db.update_one(Collection.USER, user.id, {'$set': {'lastLogin': now}})
    user.lastLogin = now
    access_ttl = settings.REFRESH_TOKEN_TTL if remember_me else settings.ACCESS_TOKEN_TTL
    return user, issue_tokens(user.id, access_ttl)


def issue_tokens(user_id, access_ttl: Optional[timedelta] = None) -> dict:
    return {
        'accessToken': _create_session(user_id, ACCESS, access_ttl or settings.ACCESS_TOKEN_TTL),
        'refreshToken': _create_session(user_id, REFRESH, settings.REFRESH_TOKEN_TTL),
    }


def refresh(refresh_token: str) -> str:
    session = _find_session(refresh_token, REFRESH)
    if session is None:
        raise AuthenticationException('Invalid or expired refresh token')
    user = db.find_one(Collection.USER, User, _id=session.userId)
    if user is None or not user.isActive:
        raise AuthenticationException('Invalid refresh token')
    return _create_session(user.id, ACCESS, settings.ACCESS_TOKEN_TTL)


def logout(access_token: str, refresh_token: Optional[str] = None) -> None:
    db.delete(Collection.SESSION, token=access_token)
    if refresh_token:
        db.delete(Collection.SESSION, token=refresh_token, kind=REFRESH)


def authenticate(token: Optional[str]) -> User:
    """
    Resolves a bearer token to an active user.
    :raises AuthenticationException: when the token is missing, unknown or expired, or the user is gone
    """
    if not token:
        raise AuthenticationException('Access token is required')
    session = db.find_one(Collection.SESSION, Session, token=token, kind=ACCESS)
    if session is None:
        raise AuthenticationException('Invalid token')
    if session.expired:
        db.delete(Collection.SESSION, _id=session.id)
        raise AuthenticationException('Token expired')
    user = db.find_one(Collection.USER, User, _id=session.userId)
    if user is None:
        raise AuthenticationException('Invalid token - user not found')
    if not user.isActive:
        raise AuthenticationException('Account is deactivated')
    return user


def forgot_password(email: str) -> Optional[str]:
    """
    Stores a hashed reset token for the user with the given email.
    :return: the raw reset token, or None when no such user exists
    """
    user = db.find_one(Collection.USER, User, email=email)
    if user is None:
        return None
    token = secrets.token_hex(32)
    db.update_one(Collection.USER, user.id, {'$set': {
        'resetPasswordToken': hash_token(token),
        'resetPasswordExpire': utc_now() + settings.RESET_TOKEN_TTL,
    }})
    logger.info('Password reset requested for user %s', user.id)
    return token


def reset_password(token: str, password: str) -> dict:
    user = db.find_one(Collection.USER, User,
                       resetPasswordToken=hash_token(token),
                       resetPasswordExpire={'$gt': utc_now()})
    if user is None:
        raise ValidationException('Invalid or expired reset token')
    db.update_one(Collection.USER, user.id, {'$set': {
        'password': hash_password(password),
        'resetPasswordToken': None,
        'resetPasswordExpire': None,
        'updatedAt': utc_now(),
    }})
    # existing sessions die with the old password
    db.delete_many(Collection.SESSION, userId=user.id)
    return issue_tokens(user.id)


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not check_password(user, current_password):
        raise ValidationException('Current password is incorrect')
    if check_password(user, new_password):
        raise ValidationException('New password must be different from current password')
    db.update_one(Collection.USER, user.id, {'$set': {'password': hash_password(new_password),
                                                      'updatedAt': utc_now()}})


def verify_email(user: User, token: str) -> None:
    if not user.emailVerificationToken or not secrets.compare_digest(user.emailVerificationToken, token):
        raise AppError('Invalid verification token', 400)
    db.update_one(Collection.USER, user.id, {'$set': {
        'emailVerified': True,
        'emailVerifiedAt': utc_now(),
        'emailVerificationToken': None,
    }})


def purge_expired_sessions() -> int:
    return db.delete_many(Collection.SESSION, expiresAt={'$lt': utc_now()})


def _create_session(user_id, kind: str, ttl: timedelta) -> str:
    session = Session(_id=None,
                      token=secrets.token_urlsafe(32),
                      userId=user_id,
                      kind=kind,
                      expiresAt=utc_now() + ttl)
    db.insert(Collection.SESSION, session)
    return session.token


def _find_session(token: str, kind: str) -> Optional[Session]:
    session = db.find_one(Collection.SESSION, Session, token=token, kind=kind)
    if session is None or session.expired:
        return None
    return session
