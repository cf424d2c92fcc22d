"""
Flask integration.

Intended for use in a Flask application factory, for example:

.. code-block:: python

   from flask import Flask
   from authgate import AuthGate, Clients, Config, RequireAllPermissions

   config = Config(
       Clients(GitHubClient(key, secret),
               callback_url='https://example.org/callback'),
       authorizers={'admin': RequireAllPermissions(['admin'])}
   )
   gate = AuthGate(config=config)


   @blueprint.route('/admin')
   @gate.secured(clients=['GitHubClient'], authorizers=['admin'])
   def admin():
       return render_template('admin.html', profile=current_profile())


   def create_web_app() -> Flask:
       app = Flask('someapp')
       app.config.from_pyfile('config.py')
       gate.init_app(app)       # Sessions, /callback and /logout.
       gate.protect('/private/', clients=['GitHubClient'])
       app.register_blueprint(blueprint)
       return app

Route options are checked when the route is declared, so a typo in a client
or authorizer name fails at startup rather than on the first request.
"""

from typing import Any, Callable, Iterable, List, Optional, Tuple
from functools import wraps
import logging

from flask import Flask, Response, g, make_response, redirect, request, \
    session

from . import app_logging
from . import config as settings
from .config import CallbackHandlerOptions, Config, LogoutHandlerOptions, \
    SecurityHandlerOptions
from .context import ATTRIBUTES_KEY, WebContext
from .domain import Profile
from .engine import GateState
from .engine.callback import CallbackLogic
from .engine.logout import LogoutLogic
from .engine.security import SecurityLogic
from .exceptions import AuthenticationError, ConfigurationError, InvalidToken
from .profiles import ProfileManager
from .sessions import StoreSessionInterface, get_session_store

logger = logging.getLogger(__name__)

FORBIDDEN_BODY = 'forbidden'
UNAUTHORIZED_BODY = 'unauthorized'


class AuthGate(object):
    """Protects routes, and handles login callbacks and logout."""

    def __init__(self, app: Optional[Flask] = None,
                 config: Optional[Config] = None,
                 callback_options: Optional[CallbackHandlerOptions] = None,
                 logout_options: Optional[LogoutHandlerOptions] = None
                 ) -> None:
        """
        Parameters
        ----------
        app : :class:`Flask`
        config : :class:`.Config`
            Clients, authorizers and auth provider.
        callback_options : :class:`.CallbackHandlerOptions`
            Defaults to values from the application config.
        logout_options : :class:`.LogoutHandlerOptions`
            Defaults to values from the application config.

        """
        if config is None:
            raise ConfigurationError('AuthGate requires a Config')
        self.config = config
        self.callback_options = callback_options
        self.logout_options = logout_options
        self.security = SecurityLogic(config)
        self.callback = CallbackLogic(config)
        self.logout = LogoutLogic()
        self._protected: List[Tuple[str, SecurityHandlerOptions]] = []
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """
        Install sessions and the callback/logout routes on ``app``.

        Parameters
        ----------
        app : :class:`Flask`

        """
        settings.init_app(app)
        if app.config.get('LOG_JSON'):
            app_logging.setup_logger(app.config['LOG_LEVEL'])

        backend = app.config['AUTHGATE_SESSION_BACKEND']
        if backend in ('redis', 'local'):
            app.session_interface = StoreSessionInterface(
                get_session_store(app.config),
                app.config['JWT_SECRET'],
                int(app.config['SESSION_DURATION'])
            )
        elif backend == 'cookie':
            if not app.secret_key:
                app.secret_key = app.config['JWT_SECRET']
        else:
            raise ConfigurationError(f'Unknown session backend: {backend}')

        if self.callback_options is None:
            self.callback_options = CallbackHandlerOptions(
                default_url=app.config['DEFAULT_LOGIN_REDIRECT_URL']
            )
        if self.logout_options is None:
            self.logout_options = LogoutHandlerOptions(
                default_url=app.config['DEFAULT_LOGOUT_REDIRECT_URL'],
                url_pattern=app.config['LOGOUT_REDIRECT_PATTERN']
            )

        app.add_url_rule(app.config['AUTHGATE_CALLBACK_PATH'],
                         'authgate_callback', self.callback_view,
                         methods=['GET'])
        app.add_url_rule(app.config['AUTHGATE_LOGOUT_PATH'],
                         'authgate_logout', self.logout_view,
                         methods=['GET', 'POST'])
        app.before_request(self._check_protected_paths)
        app.extensions['authgate'] = self

    def secured(self, clients: Iterable[str], authorizers: Iterable[str] = (),
                multi_profile: bool = False) -> Callable:
        """
        Generate a decorator that protects a route.

        Parameters
        ----------
        clients : list
            Names of the clients that may authenticate the user. If the user
            is not authenticated, they are sent to the first one, unless the
            request names another with ``client_name``.
        authorizers : list
            Names of authorizers (see :class:`.Config`) that must all grant
            access.
        multi_profile : bool
            Authorize against every profile on the session.

        Raises
        ------
        :class:`.ConfigurationError`
            Raised right away if the options refer to unknown names.

        """
        options = self.config.security_options(clients, authorizers,
                                               multi_profile)

        def protector(func: Callable) -> Callable:
            """Decorator that enforces authentication and authorization."""
            @wraps(func)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                response = self.check(options)
                if response is not None:
                    return response
                return func(*args, **kwargs)
            return wrapper
        return protector

    def protect(self, prefix: str, clients: Iterable[str],
                authorizers: Iterable[str] = (),
                multi_profile: bool = False) -> None:
        """Protect every path that starts with ``prefix``."""
        options = self.config.security_options(clients, authorizers,
                                               multi_profile)
        self._protected.append((prefix, options))

    def check(self, options: SecurityHandlerOptions) -> Optional[Response]:
        """
        Run the security check for the current request.

        Returns
        -------
        :class:`Response` or None
            A redirect or a 403 response; ``None`` if the request may
            proceed.

        """
        context = WebContext.from_request()
        try:
            decision = self.security.perform(context, options)
        except AuthenticationError as e:
            logger.error('Could not start login: %s', e)
            return self._authentication_failed(e)

        if decision.state is GateState.AUTHENTICATED:
            return None
        if decision.redirect is not None:
            return redirect(decision.redirect.location,
                            code=decision.redirect.status)
        return make_response(FORBIDDEN_BODY, 403)

    def callback_view(self) -> Response:
        """Complete a login; the provider redirects the user here."""
        if self.callback_options is None:
            raise ConfigurationError('AuthGate is not initialized;'
                                     ' call init_app first')
        context = WebContext.from_request()
        try:
            directive = self.callback.perform(context, self.callback_options)
        except AuthenticationError as e:
            logger.warning('Login failed (%s): %s', e.reason, e)
            return self._authentication_failed(e)
        return redirect(directive.location, code=directive.status)

    def logout_view(self) -> Response:
        """Log out, then redirect to the ``url`` parameter or the default."""
        if self.logout_options is None:
            raise ConfigurationError('AuthGate is not initialized;'
                                     ' call init_app first')
        directive = self.logout.perform(WebContext.from_request(),
                                        self.logout_options)
        return redirect(directive.location, code=directive.status)

    def _check_protected_paths(self) -> Optional[Response]:
        for prefix, options in self._protected:
            if request.path.startswith(prefix):
                return self.check(options)
        return None

    def _authentication_failed(self, error: AuthenticationError) -> Response:
        failure_url = self.callback_options.failure_url \
            if self.callback_options else None
        if failure_url:
            return redirect(failure_url)
        return make_response(UNAUTHORIZED_BODY, 401)


def _manager() -> ProfileManager:
    if ATTRIBUTES_KEY not in g:
        setattr(g, ATTRIBUTES_KEY, {})
    return ProfileManager(session, getattr(g, ATTRIBUTES_KEY))


def current_profiles() -> List[Profile]:
    """Profiles of the caller of the current request."""
    try:
        return _manager().get_all()
    except InvalidToken as e:
        logger.warning('Could not read profiles: %s', e)
        return []


def current_profile() -> Optional[Profile]:
    """Primary profile of the caller of the current request, or ``None``."""
    profiles = current_profiles()
    return profiles[0] if profiles else None
