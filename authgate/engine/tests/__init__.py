"""Tests for :mod:`authgate.engine`."""

from typing import Optional

from ...clients import IndirectClient
from ...context import WebContext
from ...domain import Profile


class StubClient(IndirectClient):
    """Answers with a fixed profile, or a fixed error."""

    def __init__(self, name: str, profile: Optional[Profile] = None,
                 error: Optional[Exception] = None) -> None:
        super().__init__(name, 'http://localhost/callback')
        self.profile = profile
        self.error = error

    def redirection_url(self, context: WebContext) -> str:
        if self.error is not None:
            raise self.error
        return f'https://{self.name.lower()}.example/login'

    def complete_login(self, context: WebContext) -> Optional[Profile]:
        if self.error is not None:
            raise self.error
        return self.profile
