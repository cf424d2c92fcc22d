"""Clients and a provider stand-in for exercising the login handshake."""

from typing import Dict, List, Optional
from urllib.parse import quote, urlsplit, parse_qs
import secrets

from flask import Flask

from authgate import AuthGate, Clients, Config, CallbackHandlerOptions, \
    IndirectClient, Profile, RequireAllPermissions, build_profile
from authgate.context import WebContext
from authgate.exceptions import AuthenticationError

TEST_CLIENT_NAME = 'TestOAuth2Client'
TEST_CLIENT_ID = 'testClient'
TEST_CLIENT_SECRET = 'testClientSecret'
TEST_OAUTH2_SUCCESS_URL = 'http://localhost:9292/authSuccess'
CALLBACK_URL = 'http://localhost/authResult'
REQUIRE_ALL_AUTHORIZER = 'requireAllAuthorizer'
SUCCESS_BODY = 'authenticationSuccess'


class OAuth2ProviderMimic(object):
    """Hands out one-time codes for known users, and redeems them."""

    def __init__(self, users: Optional[Dict[str, dict]] = None) -> None:
        self.users = users or {}
        self._codes: Dict[str, str] = {}

    def authorize(self, user_id: str) -> str:
        """The user logs in at the provider; a code is issued."""
        code = secrets.token_hex(8)
        self._codes[code] = user_id
        return code

    def exchange(self, code: str, key: str, secret: str) -> dict:
        """The client redeems a code for the user's details."""
        if (key, secret) != (TEST_CLIENT_ID, TEST_CLIENT_SECRET):
            raise AuthenticationError('Bad client credentials')
        user_id = self._codes.pop(code, None)
        if user_id is None:
            raise AuthenticationError('Unknown or reused code',
                                      reason='invalid_grant')
        return dict(self.users.get(user_id, {}), id=user_id)


class TestOAuth2Client(IndirectClient):
    """Speaks to :class:`OAuth2ProviderMimic` instead of a real provider."""

    __test__ = False

    def __init__(self, provider: OAuth2ProviderMimic,
                 name: str = TEST_CLIENT_NAME,
                 key: str = TEST_CLIENT_ID,
                 secret: str = TEST_CLIENT_SECRET,
                 base_auth_url: str = TEST_OAUTH2_SUCCESS_URL) -> None:
        super().__init__(name)
        self.provider = provider
        self.key = key
        self.secret = secret
        self.authorization_url_template = \
            base_auth_url + '?client_id=%s&redirect_uri=%s&state=%s'

    def redirection_url(self, context: WebContext) -> str:
        return self.authorization_url_template % (
            quote(self.key),
            quote(self.compute_callback_url(), safe=''),
            self.generate_state(context)
        )

    def complete_login(self, context: WebContext) -> Profile:
        self.validate_state(context)
        code = context.get_parameter('code')
        if not code:
            raise AuthenticationError('Missing code', reason='missing_code')
        user = self.provider.exchange(code, self.key, self.secret)
        user_id = user.pop('id')
        return build_profile(user_id, attributes=user)


def grant_permissions(table: Dict[str, List[str]]):
    """Authorization generator granting permissions by user ID."""
    def generator(context: WebContext, profile: Profile) -> Profile:
        return profile.with_roles(*table.get(profile.id, []))
    return generator


PERMISSIONS = {
    'testUser1': [],
    'testUser2': ['permission2'],
    'testUser3': ['permission1', 'permission2'],
}


def create_app(provider: OAuth2ProviderMimic,
               required_permissions: Optional[List[str]] = None,
               authorizers: tuple = (REQUIRE_ALL_AUTHORIZER,),
               **app_config: str) -> Flask:
    """Web server with ``/private/*`` protected by the test client."""
    app = Flask('test_authgate_app')
    app.config['AUTHGATE_SESSION_BACKEND'] = 'local'
    app.config['AUTHGATE_CALLBACK_PATH'] = '/authResult'
    app.config['SESSION_COOKIE_NAME'] = 'oAuth2Consumer.session'
    app.config.update(app_config)

    client = TestOAuth2Client(provider)
    client.add_authorization_generator(grant_permissions(PERMISSIONS))
    config = Config(
        Clients(client, callback_url=CALLBACK_URL),
        authorizers={
            REQUIRE_ALL_AUTHORIZER:
                RequireAllPermissions(required_permissions or [])
        }
    )
    gate = AuthGate(app, config, callback_options=CallbackHandlerOptions(
        default_url='/', multi_profile=False
    ))

    @app.route('/private/success.html')
    @gate.secured(clients=[TEST_CLIENT_NAME], authorizers=authorizers)
    def success() -> str:
        return SUCCESS_BODY

    @app.route('/')
    def home() -> str:
        return 'home'

    return app


def login_at_provider(provider: OAuth2ProviderMimic, location: str,
                      user_id: str) -> str:
    """
    Play the provider's part: the user logs in, and is sent to our callback.

    Returns the path (with query) of the callback request.
    """
    params = parse_qs(urlsplit(location).query)
    redirect_uri = params['redirect_uri'][0]
    state = params['state'][0]
    code = provider.authorize(user_id)
    callback = urlsplit(redirect_uri)
    return f'{callback.path}?{callback.query}&code={code}&state={state}'
