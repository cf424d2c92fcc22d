"""
Server-side sessions.

Session data are kept in a key-value store (see :mod:`.store`), and the
browser holds only a signed cookie identifying the session (see
:mod:`.interface`).
"""

from .store import SessionStore, RedisSessionStore, LocalSessionStore, \
    get_session_store
from .interface import ServerSideSession, StoreSessionInterface
