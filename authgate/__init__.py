"""
Authentication and authorization of requests against external identity
providers.

This package decides, for each request to a protected route, whether the
caller is authenticated and authorized, and runs the redirect-based login
handshake with an identity provider when they are not. The provider
protocols themselves are implemented by :class:`.clients.Client` subclasses;
this package only asks them for a login URL and, on callback, for a
:class:`.domain.Profile`.

Quick start
-----------

1. Register your clients and authorizers in a :class:`.config.Config`.
2. Install :class:`.ext.AuthGate` onto your application. This sets up
   server-side sessions and the callback and logout routes.
3. Protect routes with :meth:`.ext.AuthGate.secured`, or whole path prefixes
   with :meth:`.ext.AuthGate.protect`.

.. code-block:: python

   gate = AuthGate(config=Config(Clients(MyOAuth2Client(...),
                                         callback_url=CALLBACK_URL)))

   def create_web_app() -> Flask:
       app = Flask('foo')
       gate.init_app(app)
       gate.protect('/private/', clients=['MyOAuth2Client'])
       return app

Inside a protected view, :func:`.ext.current_profile` returns the caller's
identity.
"""

from .domain import Profile, build_profile
from .clients import Client, IndirectClient, Clients
from .authorizers import Authorizer, AuthorizationDecision, \
    RequireAllPermissions, RequireAnyPermission, ClientNameAuthorizer, \
    PredicateAuthorizer
from .config import Config, SecurityHandlerOptions, CallbackHandlerOptions, \
    LogoutHandlerOptions
from .exceptions import ConfigurationError, AuthenticationError, \
    SessionDecodeError
from .ext import AuthGate, current_profile, current_profiles
