"""Signed session tokens (HS256 JWT) carrying the caller's identity."""
from __future__ import annotations

import base64
import binascii
import datetime
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import jwt

from .errors import ConfigurationError, InvalidTokenError
from .guards import Actor

ALGORITHM = 'HS256'
MIN_KEY_BYTES = 32

Clock = Callable[[], datetime.datetime]


def system_clock() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class TokenSettings:
    secret_key: str
    expiration: datetime.timedelta = datetime.timedelta(days=1)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> 'TokenSettings':
        return cls(
            secret_key=config.get('JWT_SECRET_KEY'),
            expiration=datetime.timedelta(seconds=int(config.get('JWT_EXPIRATION', 86400))),
        )


def signing_key(secret: Optional[str]) -> bytes:
    """Decode the base64 secret into an HMAC key of at least 256 bits."""
    if not secret:
        raise ConfigurationError('JWT_SECRET_KEY is not configured')
    try:
        key = base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigurationError('JWT_SECRET_KEY must be base64 encoded') from exc
    if len(key) < MIN_KEY_BYTES:
        raise ConfigurationError(f'JWT_SECRET_KEY must decode to at least {MIN_KEY_BYTES} bytes')
    return key


class TokenService:
    def __init__(self, settings: TokenSettings, clock: Clock = system_clock):
        self._key = signing_key(settings.secret_key)
        self._expiration = settings.expiration
        self._clock = clock

    def issue(
        self,
        actor: Actor,
        extra_claims: Optional[Dict[str, Any]] = None,
        ttl: Optional[datetime.timedelta] = None,
    ) -> str:
        now = self._clock()
        expires_at = (now + (self._expiration if ttl is None else ttl)).timestamp()
        payload = dict(extra_claims or {})
        payload.update(
            sub=str(actor.id),
            iat=int(now.timestamp()),
            # whole seconds; a live token keeps at least its full ttl, an expired one stays expired
            exp=math.ceil(expires_at) if expires_at > now.timestamp() else math.floor(expires_at),
            authorities=sorted(actor.roles),
        )
        return jwt.encode(payload, self._key, algorithm=ALGORITHM)

    def claims(self, token: str) -> Dict[str, Any]:
        """Verify the signature and return the claim set.

        Time based claims are not checked here; ``is_valid`` compares the
        expiry against the injected clock.
        """
        try:
            return jwt.decode(
                token,
                self._key,
                algorithms=[ALGORITHM],
                options={
                    'require': ['sub', 'iat', 'exp'],
                    'verify_exp': False,
                    'verify_iat': False,
                    'verify_nbf': False,
                },
            )
        except jwt.PyJWTError as exc:
            raise InvalidTokenError(f'Invalid token: {exc}') from exc

    def resolve_subject(self, token: str) -> str:
        return str(self.claims(token)['sub'])

    def is_valid(self, token: str, expected_subject: str) -> bool:
        claims = self.claims(token)
        if str(claims['sub']) != str(expected_subject):
            return False
        return self._clock().timestamp() < claims['exp']
