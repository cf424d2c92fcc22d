"""Defines the authenticated identity carried by a session."""

from typing import Any, Optional, NamedTuple, List, Dict, Iterable, Callable
from typing import Mapping, Sequence
from typing import get_type_hints
from datetime import datetime
from functools import partial
from types import MappingProxyType
import dateutil.parser
from pytz import UTC


class Profile(NamedTuple):
    """An identity established by one of the configured clients."""

    id: str
    """Identifier of the user at the identity provider."""

    client_name: str = ''
    """Name of the :class:`.Client` that authenticated this identity."""

    attributes: Mapping[str, Any] = MappingProxyType({})
    """Claims returned by the provider (e-mail, display name, etc)."""

    roles: Sequence[str] = ()
    """
    Roles and permissions granted to this identity.

    Order is preserved and duplicates are dropped; see :func:`unique`.
    """

    expires_at: Optional[datetime] = None
    """After this time the profile is no longer valid."""

    @property
    def typed_id(self) -> str:
        """Identifier qualified by the originating client."""
        return f'{self.client_name}#{self.id}'

    @property
    def expired(self) -> bool:
        """Expired if the current time is later than :attr:`.expires_at`."""
        return bool(self.expires_at is not None
                    and datetime.now(tz=UTC) >= self.expires_at)

    def has_permissions(self, required: Iterable[str]) -> bool:
        """Check whether this profile holds every one of ``required``."""
        return set(required) <= set(self.roles)

    def with_roles(self, *roles: str) -> 'Profile':
        """Create a copy of this profile with additional roles."""
        return self._replace(roles=unique(list(self.roles) + list(roles)))


def unique(values: Iterable[str]) -> List[str]:
    """Drop duplicates from ``values``, keeping the first occurrence."""
    seen = set()
    ordered = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


def build_profile(id: str, client_name: str = '',
                  attributes: Optional[Dict[str, Any]] = None,
                  roles: Optional[Iterable[str]] = None,
                  expires_at: Optional[datetime] = None) -> Profile:
    """Create a :class:`.Profile`, normalizing attributes and roles."""
    return Profile(id=str(id), client_name=client_name,
                   attributes=dict(attributes or {}),
                   roles=unique(roles or []),
                   expires_at=expires_at)


# Helpers and private functions.


def to_dict(obj: tuple) -> dict:
    """
    Generate a dict representation of a NamedTuple instance.

    This just uses the built-in ``_asdict`` method on the intance, but also
    calls this on any child NamedTuple instances (recursively) so that the
    entire tree is cast to ``dict``.

    Parameters
    ----------
    obj : tuple
        A NamedTuple instance.

    Returns
    -------
    dict

    """
    if not hasattr(obj, '_asdict'):  # NamedTuple-generated classes have this.
        return {}
    data = obj._asdict()  # type: ignore

    def _cast(obj: Any) -> Any:
        if hasattr(obj, '_asdict'):
            obj = to_dict(obj)
        elif isinstance(obj, datetime):
            obj = obj.isoformat()
        elif isinstance(obj, (list, tuple)):
            obj = [_cast(o) for o in obj]
        elif isinstance(obj, Mapping):
            obj = {key: _cast(value) for key, value in obj.items()}
        return obj

    return {key: _cast(value) for key, value in data.items()}


def from_dict(cls: type, data: dict) -> Any:
    """
    Generate a NamedTuple instance from a dict, with recursion.

    This is the inverse of :func:`to_dict`. Keys that are not fields of
    ``cls`` are ignored; missing fields take their defaults.

    Parameters
    ----------
    cls: type
        Any NamedTuple class.

    data: dict
        Data with which to instantiate ``cls`` and its children.

    Returns
    -------
    NamedTuple
        An instance of ``cls``.

    Raises
    ------
    TypeError
        If ``data`` is not a dict, or a required field is missing.
    ValueError
        If a timestamp cannot be parsed.

    """
    if not isinstance(data, dict):
        raise TypeError(f'Expected a dict, got {type(data).__name__}')
    _data = {}
    for field, field_type in get_type_hints(cls).items():
        if field not in data:
            continue
        value = data[field]
        target_type = _get_cast_type(field_type, value)
        if target_type:
            value = target_type(value)
        _data[field] = value
    return cls(**_data)


def _is_a_namedtuple(field_type: type) -> bool:
    """Determine whether or not a field type is a NamedTuple class."""
    return hasattr(field_type, '_fields')


def _type_args(field_type: type) -> tuple:
    """Get the members of a typing construct, e.g. ``Optional[datetime]``."""
    return getattr(field_type, '__args__', None) or ()


def _parse_datetime(value: str) -> datetime:
    parsed = dateutil.parser.parse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _get_cast_type(field_type: type, value: Any) -> Optional[Callable]:
    """Get a casting callable for a field type/value."""
    if isinstance(value, dict):
        if _is_a_namedtuple(field_type):
            return partial(from_dict, field_type)
        for s_type in _type_args(field_type):
            if _is_a_namedtuple(s_type):
                return partial(from_dict, s_type)
        return dict
    if isinstance(value, str):
        if field_type is datetime or datetime in _type_args(field_type):
            return _parse_datetime
    if isinstance(value, (list, tuple)) and field_type == Sequence[str]:
        return unique
    return None
