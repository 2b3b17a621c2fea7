"""
JWT access and refresh tokens.

Tokens carry user_id, username, email, role, site_id, type and a unique
jti. Logged-out tokens are blacklisted by jti in the Django cache until
they would have expired anyway.
"""
import logging
import uuid

from django.core.cache import cache
from django.utils import timezone
from jose import jwt
from jose.exceptions import JWTError

from ..conf import cms_settings

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"

BLACKLIST_KEY = "cms_engine_token_blacklist_{}"


def build_claims(user, site=None, role=None):
    return {
        "user_id": user.pk,
        "username": user.get_username(),
        "email": user.email,
        "role": role,
        "site_id": site.pk if site is not None else None,
    }


def create_token(claims, token_type, ttl, now=None):
    """Encode a signed token of the given type that expires after ttl."""
    now = now or timezone.now()
    payload = dict(claims)
    payload.update({
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        "iss": cms_settings.JWT_ISSUER,
        "aud": cms_settings.JWT_AUDIENCE,
    })
    return jwt.encode(payload, cms_settings.JWT_SECRET, algorithm=cms_settings.JWT_ALGORITHM)


def generate_token_pair(user, site=None, role=None, now=None):
    """Return a dict with a fresh access and refresh token."""
    claims = build_claims(user, site, role)
    access_ttl = cms_settings.JWT_ACCESS_TTL
    return {
        "access_token": create_token(claims, ACCESS, access_ttl, now),
        "refresh_token": create_token(claims, REFRESH, cms_settings.JWT_REFRESH_TTL, now),
        "token_type": "Bearer",
        "expires_in": int(access_ttl.total_seconds()),
    }


def _decode(token, verify_exp=True):
    return jwt.decode(
        token,
        cms_settings.JWT_SECRET,
        algorithms=[cms_settings.JWT_ALGORITHM],
        audience=cms_settings.JWT_AUDIENCE,
        issuer=cms_settings.JWT_ISSUER,
        options={"verify_exp": verify_exp},
    )


def verify_token(token, expected_type=ACCESS):
    """
    Return the token's claims, or None if it is invalid, expired,
    blacklisted or of the wrong type.
    """
    try:
        claims = _decode(token)
    except JWTError:
        return None
    if claims.get("type") != expected_type:
        return None
    if is_blacklisted(claims):
        return None
    return claims


def is_blacklisted(claims):
    jti = claims.get("jti")
    return bool(jti) and cache.get(BLACKLIST_KEY.format(jti)) is not None


def blacklist_token(token):
    """
    Reject a token from now on. Returns False for tokens that do not
    verify, which need no blacklisting.
    """
    try:
        claims = _decode(token, verify_exp=False)
    except JWTError:
        return False
    jti = claims.get("jti")
    if not jti:
        return False
    remaining = int(claims.get("exp", 0) - timezone.now().timestamp())
    if remaining <= 0:
        return True
    cache.set(BLACKLIST_KEY.format(jti), True, timeout=remaining)
    logger.debug("Blacklisted token %s", jti)
    return True
