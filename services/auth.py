"""Authentication helper utilities used by routes."""
from __future__ import annotations

import re
from functools import wraps
from typing import Any, Mapping, Optional

from flask import current_app, g, request
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from models import db, User

from .errors import AccountDisabledError, AuthenticationError, InvalidTokenError, ValidationError, text_value
from .guards import Actor
from .tokens import TokenService

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 8


def get_token_service() -> TokenService:
    return current_app.extensions['token_service']


def register_user(data: Mapping[str, Any]) -> User:
    firstname = text_value(data, 'firstname').strip()
    lastname = text_value(data, 'lastname').strip()
    email = text_value(data, 'email').strip().lower()
    password = text_value(data, 'password')
    if not firstname or not lastname:
        raise ValidationError('firstname and lastname are required')
    if not EMAIL_RE.match(email):
        raise ValidationError('email is not well formatted')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'password should be {MIN_PASSWORD_LENGTH} characters long minimum')
    if User.query.filter_by(email=email).first():
        raise ValidationError('email is already registered')
    user = User(
        firstname=firstname,
        lastname=lastname,
        email=email,
        password_hash=generate_password_hash(password),
        enabled=True,
        roles='USER',
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError('email is already registered') from None
    current_app.logger.info('Registered user %s', user.id)
    return user


def issue_token(user: User) -> str:
    return get_token_service().issue(Actor.from_user(user), {'fullName': user.full_name})


def authenticate(email: str, password: str) -> str:
    if not isinstance(email, str) or not isinstance(password, str):
        raise ValidationError('email and password must be strings')
    user = User.query.filter_by(email=email.strip().lower()).first()
    if not user or not check_password_hash(user.password_hash, password):
        current_app.logger.warning('Failed login for %s', email)
        raise AuthenticationError('Email and / or password is incorrect')
    if not user.enabled:
        raise AccountDisabledError('User account is disabled')
    return issue_token(user)


def bearer_token() -> Optional[str]:
    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    return header[len('Bearer '):].strip() or None


def resolve_actor(token: str) -> Actor:
    tokens = get_token_service()
    subject = tokens.resolve_subject(token)
    try:
        user = db.session.get(User, int(subject))
    except ValueError:
        raise InvalidTokenError('Token subject is not a user id') from None
    if user is None or not tokens.is_valid(token, str(user.id)):
        raise InvalidTokenError('Token is expired or does not match a user')
    if not user.enabled:
        raise AccountDisabledError('User account is disabled')
    g.current_user = user
    return Actor.from_user(user)


def get_current_actor() -> Optional[Actor]:
    return getattr(g, 'current_actor', None)


def token_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        token = bearer_token()
        if not token:
            raise InvalidTokenError('Missing bearer token')
        g.current_actor = resolve_actor(token)
        return view(*args, **kwargs)

    return wrapped
