"""Provides tools for working with the authenticated portal session."""

import logging
from typing import Any, Mapping, Optional

from flask import Flask, current_app

from onboard_auth import config
from onboard_auth.services import api as account_api
from onboard_auth.services import storage as token_storage

from . import account, guards, interceptor, navigation, onboarding
from .account import AccountClient
from .guards import GuardChain
from .interceptor import AuthInterceptor
from .navigation import Navigator
from .routes import RouteTable
from .sessions import store
from .sessions.store import SessionStore

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'onboard_auth'


class OnboardAuth(object):
    """
    Wires the session store, interceptor, guards and account client together.

    Set env var or `Flask.config` `ONBOARD_AUTH_DEBUG` to True to get
    additional debugging in the logs. Only use this for short term debugging
    of configs.

    Intended for use in a Flask application factory, for example:

    .. code-block:: python

       from flask import Flask
       from onboard_auth.auth import OnboardAuth
       from someapp import routes


       def create_web_app() -> Flask:
          app = Flask('someapp')
          app.config.from_pyfile('config.py')
          OnboardAuth(app)   # Restores the session before serving.
          app.register_blueprint(routes.blueprint)
          return app

    """

    store: SessionStore
    interceptor: AuthInterceptor
    account: AccountClient
    guards: GuardChain
    navigator: Navigator

    def __init__(self, app: Optional[Flask] = None) -> None:
        if app is not None:
            self.init_app(app)

    @classmethod
    def build(cls, settings: Optional[Mapping[str, Any]] = None,
              initialize: bool = True) -> 'OnboardAuth':
        """
        Create the components from ``settings``, without a Flask app.

        Parameters
        ----------
        settings : dict
            Configuration keys as in :mod:`onboard_auth.config`. Missing keys
            take their defaults from there.
        initialize : bool
            Run :meth:`.SessionStore.initialize` before returning.

        """
        settings = settings or {}
        extension = cls()
        api = account_api.get_session(settings)
        storage = token_storage.get_token_storage(settings)
        extension.store = SessionStore(
            api, storage,
            token_key=settings.get('ACCESS_TOKEN_KEY',
                                   config.ACCESS_TOKEN_KEY)
        )
        extension.interceptor = AuthInterceptor(api, extension.store)
        extension.account = AccountClient(extension.interceptor,
                                          extension.store)
        extension.guards = GuardChain(
            extension.store, RouteTable(),
            debug=bool(settings.get('ONBOARD_AUTH_DEBUG',
                                    config.ONBOARD_AUTH_DEBUG))
        )
        extension.navigator = Navigator(
            extension.guards,
            max_redirects=int(settings.get('MAX_REDIRECTS',
                                           config.MAX_REDIRECTS))
        )
        if initialize:
            extension.store.initialize()
        return extension

    def init_app(self, app: Flask) -> None:
        """
        Build the components from ``app.config`` and attach them to ``app``.

        Parameters
        ----------
        app : :class:`Flask`

        """
        account_api.init_app(app)
        token_storage.init_app(app)
        app.config.setdefault('ACCESS_TOKEN_KEY', config.ACCESS_TOKEN_KEY)
        app.config.setdefault('MAX_REDIRECTS', config.MAX_REDIRECTS)
        app.config.setdefault('ONBOARD_AUTH_DEBUG', config.ONBOARD_AUTH_DEBUG)
        app.config.setdefault('ONBOARD_AUTH_INITIALIZE', True)

        if app.config.get('ONBOARD_AUTH_DEBUG'):
            self.auth_debug()
            logger.debug('ONBOARD_AUTH_DEBUG is set; auth debug logging on')

        built = self.build(app.config,
                           initialize=app.config['ONBOARD_AUTH_INITIALIZE'])
        self.store = built.store
        self.interceptor = built.interceptor
        self.account = built.account
        self.guards = built.guards
        self.navigator = built.navigator
        self.app = app
        app.extensions[EXTENSION_KEY] = self

    def teardown(self) -> None:
        """Release network and storage handles."""
        self.store.teardown()

    def auth_debug(self) -> None:
        """Sets the auth loggers to DEBUG."""
        for module in (store, interceptor, onboarding, guards, navigation,
                       account):
            module.logger.setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)


def current_auth() -> OnboardAuth:
    """The :class:`OnboardAuth` attached to the current Flask app."""
    return current_app.extensions[EXTENSION_KEY]
