"""
The view of a single request used by clients and the handler logic.

:class:`WebContext` captures concrete objects rather than Flask's context-local
proxies, so it can be handed to a provider call running in another thread.
"""

from typing import Any, Dict, Mapping, MutableMapping, Optional
import logging

from flask import request, session, g

logger = logging.getLogger(__name__)

ATTRIBUTES_KEY = 'authgate_attributes'


class WebContext(object):
    """Request URL, parameters, headers, session and request attributes."""

    def __init__(self, url: str = '/', path: str = '/',
                 parameters: Optional[Mapping[str, str]] = None,
                 headers: Optional[Mapping[str, str]] = None,
                 session: Optional[MutableMapping[str, Any]] = None,
                 attributes: Optional[Dict[str, Any]] = None,
                 method: str = 'GET') -> None:
        self.url = url
        self.path = path
        self.method = method
        self.parameters: Mapping[str, str] = parameters or {}
        self.headers: Mapping[str, str] = headers or {}
        self.session: MutableMapping[str, Any] = \
            session if session is not None else {}
        self.attributes: Dict[str, Any] = \
            attributes if attributes is not None else {}

    @classmethod
    def from_request(cls) -> 'WebContext':
        """Build a context for the current Flask request."""
        query = request.query_string.decode('utf-8', 'replace')
        path = request.path + (f'?{query}' if query else '')
        if ATTRIBUTES_KEY not in g:
            setattr(g, ATTRIBUTES_KEY, {})
        return cls(url=request.url, path=path,
                   parameters=request.values.to_dict(),
                   headers=dict(request.headers),
                   session=session._get_current_object(),  # type: ignore
                   attributes=getattr(g, ATTRIBUTES_KEY),
                   method=request.method)

    def get_parameter(self, name: str) -> Optional[str]:
        """Get a query or form parameter."""
        return self.parameters.get(name)

    def get_header(self, name: str) -> Optional[str]:
        """Get a request header, ignoring case."""
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None

    def renew_session(self) -> None:
        """
        Issue a new session identifier, keeping the session contents.

        Sessions without an identifier (e.g. signed-cookie sessions) have
        nothing to rotate.
        """
        regenerate = getattr(self.session, 'regenerate', None)
        if regenerate is None:
            logger.debug('Session has no identifier to renew')
            return
        regenerate()
