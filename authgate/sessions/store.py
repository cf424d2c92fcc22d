"""
Key-value stores for server-side session data.

Session data are held as JSON under the session ID, and expire after
``duration`` seconds without being written. :class:`RedisSessionStore` is
used when the application runs in more than one process;
:class:`LocalSessionStore` keeps data in memory, for development and tests.
"""

from typing import Any, Dict, Optional, Tuple
from datetime import datetime, timedelta
from threading import Lock
import json
import logging

from pytz import UTC
import redis
from retry import retry

from ..exceptions import SessionStoreUnavailable

logger = logging.getLogger(__name__)


class SessionStore(object):
    """Stores session data by session ID."""

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Get session data, or ``None`` if unknown or expired."""
        raise NotImplementedError('Implemented by each store')

    def put(self, session_id: str, data: Dict[str, Any],
            ttl: Optional[int] = None) -> None:
        """Store session data, replacing what was there."""
        raise NotImplementedError('Implemented by each store')

    def delete(self, session_id: str) -> None:
        """Remove session data; unknown IDs are ignored."""
        raise NotImplementedError('Implemented by each store')


class RedisSessionStore(SessionStore):
    """
    Manages a connection to Redis.

    In fact, the StrictRedis instance is thread safe and connections are
    attached at the time a command is executed. This class simply provides a
    container for configuration.
    """

    def __init__(self, host: str, port: int, db: int = 0,
                 duration: int = 7200, prefix: str = 'authgate:session:'
                 ) -> None:
        """Open the connection to Redis."""
        logger.debug('New Redis connection at %s, port %s', host, port)
        self.r = redis.StrictRedis(host=host, port=port, db=db)
        self._duration = duration
        self._prefix = prefix

    def _key(self, session_id: str) -> str:
        return f'{self._prefix}{session_id}'

    @retry(SessionStoreUnavailable, tries=3, delay=0.1, backoff=2)
    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        try:
            raw = self.r.get(self._key(session_id))
        except redis.exceptions.ConnectionError as e:
            raise SessionStoreUnavailable(f'Connection failed: {e}') from e
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning('Discarding corrupted session %s', session_id)
            return None
        return data if isinstance(data, dict) else None

    def put(self, session_id: str, data: Dict[str, Any],
            ttl: Optional[int] = None) -> None:
        try:
            self.r.set(self._key(session_id), json.dumps(data),
                       ex=ttl or self._duration)
        except redis.exceptions.ConnectionError as e:
            logger.error('Could not store session: %s', e)
            raise SessionStoreUnavailable(f'Connection failed: {e}') from e

    def delete(self, session_id: str) -> None:
        try:
            self.r.delete(self._key(session_id))
        except redis.exceptions.ConnectionError as e:
            logger.error('Could not delete session: %s', e)
            raise SessionStoreUnavailable(f'Connection failed: {e}') from e


class LocalSessionStore(SessionStore):
    """Sessions in the memory of this process."""

    def __init__(self, duration: int = 7200) -> None:
        self._duration = duration
        self._data: Dict[str, Tuple[str, datetime]] = {}
        self._lock = Lock()

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._data.get(session_id)
            if entry is None:
                return None
            raw, expires = entry
            if expires <= datetime.now(tz=UTC):
                del self._data[session_id]
                return None
        data: Dict[str, Any] = json.loads(raw)
        return data

    def put(self, session_id: str, data: Dict[str, Any],
            ttl: Optional[int] = None) -> None:
        expires = datetime.now(tz=UTC) + timedelta(
            seconds=ttl or self._duration)
        # Serialize on the way in, as the distributed store would.
        raw = json.dumps(data)
        with self._lock:
            self._data[session_id] = (raw, expires)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._data.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._data)


def get_session_store(config: Dict[str, Any]) -> SessionStore:
    """Build the session store described by the application config."""
    duration = int(config.get('SESSION_DURATION', '7200'))
    if config.get('AUTHGATE_SESSION_BACKEND') == 'redis':
        return RedisSessionStore(config.get('REDIS_HOST', 'localhost'),
                                 int(config.get('REDIS_PORT', '6379')),
                                 int(config.get('REDIS_DATABASE', '0')),
                                 duration)
    return LocalSessionStore(duration)
