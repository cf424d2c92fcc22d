"""Functions for working with stored profiles and bearer tokens."""

from typing import Any, Mapping
from datetime import datetime

import jwt

from .. import domain
from ..exceptions import InvalidToken, SessionDecodeError

ALGORITHM = 'HS256'


def serialize(profile: domain.Profile) -> dict:
    """Represent a profile as JSON-compatible data."""
    return domain.to_dict(profile)


def deserialize(data: Any) -> domain.Profile:
    """
    Rebuild a profile from :func:`serialize` output.

    Raises
    ------
    :class:`.SessionDecodeError`
        If ``data`` does not describe a profile.

    """
    try:
        profile: domain.Profile = domain.from_dict(domain.Profile, data)
    except (TypeError, ValueError, OverflowError) as e:
        raise SessionDecodeError(f'Stored profile is malformed: {e}') from e
    if not profile.id or not isinstance(profile.id, str):
        raise SessionDecodeError('Stored profile has no identifier')
    if not isinstance(profile.client_name, str):
        raise SessionDecodeError('Stored client name is not a string')
    if not isinstance(profile.attributes, Mapping):
        raise SessionDecodeError('Stored attributes are not a mapping')
    if not isinstance(profile.roles, (list, tuple)) \
            or not all(isinstance(role, str) for role in profile.roles):
        raise SessionDecodeError('Stored roles are not a list of strings')
    if profile.expires_at is not None \
            and not isinstance(profile.expires_at, datetime):
        raise SessionDecodeError('Stored expiry is not a timestamp')
    return profile


def encode(profile: domain.Profile, secret: str) -> str:
    """Encode a profile as a signed JWT."""
    claims = serialize(profile)
    if profile.expires_at is not None:
        claims['exp'] = int(profile.expires_at.timestamp())
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def decode(token: str, secret: str) -> domain.Profile:
    """
    Decode a bearer token to access the profile it carries.

    Raises
    ------
    :class:`.InvalidToken`
        If the signature does not verify, or the token has expired.
    :class:`.SessionDecodeError`
        If the token is well signed but does not carry a profile.

    """
    try:
        data: dict = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.exceptions.ExpiredSignatureError as e:
        raise InvalidToken('Token has expired') from e
    except jwt.exceptions.InvalidTokenError as e:
        raise SessionDecodeError('Not a valid token') from e
    data.pop('exp', None)
    return deserialize(data)
