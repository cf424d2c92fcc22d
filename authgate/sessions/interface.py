"""
Flask session interface backed by a :class:`.SessionStore`.

Only the session ID travels to the browser, as a signed JWT in the session
cookie; the session data stay on the server. The cookie also carries a nonce
that must match the one stored with the session. A cookie that does not
verify, or that refers to an unknown or expired session, simply starts a new
one.
"""

from typing import Any, Dict, Optional, Tuple
import secrets
import logging

import jwt
from flask import Flask, Request, Response
from flask.sessions import SessionInterface, SessionMixin
from werkzeug.datastructures import CallbackDict

from .store import SessionStore

logger = logging.getLogger(__name__)


def _generate_session_id() -> str:
    return secrets.token_urlsafe(32)


def _generate_nonce(length: int = 8) -> str:
    return secrets.token_hex(length)


class ServerSideSession(CallbackDict, SessionMixin):
    """Session data with the ID under which they are stored."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None,
                 sid: Optional[str] = None, new: bool = False,
                 nonce: Optional[str] = None) -> None:
        def on_update(self: 'ServerSideSession') -> None:
            self.modified = True
            self.accessed = True

        CallbackDict.__init__(self, initial, on_update)
        self.sid = sid or _generate_session_id()
        self.nonce = nonce or _generate_nonce()
        self.new = new
        self.modified = False
        self.accessed = False
        self.previous_sid: Optional[str] = None

    def __getitem__(self, key: str) -> Any:
        self.accessed = True
        return super().__getitem__(key)

    def get(self, key: str, default: Any = None) -> Any:
        self.accessed = True
        return super().get(key, default)

    def setdefault(self, key: str, default: Any = None) -> Any:
        self.accessed = True
        return super().setdefault(key, default)

    def regenerate(self) -> None:
        """Move the session to a new ID; the old one is discarded on save."""
        if self.previous_sid is None and not self.new:
            self.previous_sid = self.sid
        self.sid = _generate_session_id()
        self.nonce = _generate_nonce()
        self.modified = True
        logger.debug('Session renewed')


class StoreSessionInterface(SessionInterface):
    """
    Loads and saves :class:`ServerSideSession` via a store.

    Each stored record holds the session ``data`` and its ``nonce``.
    """

    session_class = ServerSideSession

    def __init__(self, store: SessionStore, secret: str,
                 duration: int = 7200) -> None:
        self.store = store
        self._secret = secret
        self._duration = duration

    def open_session(self, app: Flask, request: Request) -> ServerSideSession:
        cookie = request.cookies.get(self.get_cookie_name(app))
        if not cookie:
            return self.session_class(new=True)
        unpacked = self._unpack_cookie(cookie)
        if unpacked is None:
            return self.session_class(new=True)
        sid, nonce = unpacked
        record = self.store.get(sid)
        if not isinstance(record, dict):
            logger.debug('No such session; starting a new one')
            return self.session_class(new=True)
        data = record.get('data')
        stored_nonce = record.get('nonce')
        if not isinstance(data, dict) or not isinstance(stored_nonce, str) \
                or not secrets.compare_digest(stored_nonce, nonce):
            logger.warning('Session cookie does not match stored session')
            return self.session_class(new=True)
        return self.session_class(data, sid=sid, nonce=nonce)

    def save_session(self, app: Flask,  # type: ignore[override]
                     session: ServerSideSession,
                     response: Response) -> None:
        name = self.get_cookie_name(app)
        domain = self.get_cookie_domain(app)
        path = self.get_cookie_path(app)
        secure = self.get_cookie_secure(app)
        samesite = self.get_cookie_samesite(app)
        httponly = self.get_cookie_httponly(app)

        if session.accessed:
            response.vary.add('Cookie')

        if session.previous_sid is not None:
            self.store.delete(session.previous_sid)
            session.previous_sid = None

        if not session:
            if session.modified:
                self.store.delete(session.sid)
                if not session.new:
                    response.delete_cookie(name, domain=domain, path=path,
                                           secure=secure, samesite=samesite,
                                           httponly=httponly)
            return

        if not session.modified:
            return

        self.store.put(session.sid,
                       {'nonce': session.nonce, 'data': dict(session)},
                       self._duration)
        response.set_cookie(name,
                            self._pack_cookie(session.sid, session.nonce),
                            expires=self.get_expiration_time(app, session),
                            httponly=httponly, domain=domain, path=path,
                            secure=secure, samesite=samesite)

    def _pack_cookie(self, sid: str, nonce: str) -> str:
        return jwt.encode({'session_id': sid, 'nonce': nonce}, self._secret,
                          algorithm='HS256')

    def _unpack_cookie(self, cookie: str) -> Optional[Tuple[str, str]]:
        try:
            data = jwt.decode(cookie, self._secret, algorithms=['HS256'])
            sid, nonce = data['session_id'], data['nonce']
        except (KeyError, TypeError, jwt.exceptions.InvalidTokenError):
            logger.warning('Session cookie is malformed')
            return None
        if not isinstance(sid, str) or not isinstance(nonce, str):
            return None
        return sid, nonce
