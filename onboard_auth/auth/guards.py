"""
Navigation guards.

A guard is a pure function of ``(state, path, route)`` that returns a
decision: :class:`Allow`, :class:`Redirect` or :class:`Suspend`. The
:class:`GuardChain` evaluates the guards in a fixed order against a single
snapshot of the session, stopping at the first guard that does not allow.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

from onboard_auth import config
from onboard_auth.domain import Role

from . import onboarding
from .onboarding import Allow, Redirect
from .routes import AdminTier, Route, RouteTable
from .sessions.store import SessionState, SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Suspend:
    """The session is still initializing; render nothing yet."""


Decision = Union[Allow, Redirect, Suspend]
Guard = Callable[[SessionState, str, Route], Decision]


def require_session(state: SessionState, path: str, route: Route) \
        -> Decision:
    """Wait for initialization, then require an authenticated user."""
    if state.loading:
        return Suspend()
    if state.profile is None:
        return Redirect(config.LOGIN_PATH, next_page=path)
    return Allow()


def require_role(state: SessionState, path: str, route: Route) -> Decision:
    """Send users whose role is not allowed to their canonical destination."""
    if not route.roles or state.profile.role in route.roles:
        return Allow()
    return Redirect(onboarding.canonical_destination(state.profile))


def require_onboarding(state: SessionState, path: str, route: Route) \
        -> Decision:
    if not route.onboarding:
        return Allow()
    return onboarding.resolve(state.profile, path)


def require_admin(state: SessionState, path: str, route: Route) -> Decision:
    """Enforce the route's admin tier."""
    if route.admin is AdminTier.NONE:
        return Allow()
    if state.profile.role is not Role.ADMIN:
        return Redirect(onboarding.DASHBOARD)
    if route.admin is AdminTier.SUPERADMIN and not state.profile.is_super:
        return Redirect(onboarding.ADMIN)
    return Allow()


GUARDS: Sequence[Guard] = (
    require_session,
    require_role,
    require_onboarding,
    require_admin,
)


class GuardChain(object):
    """Decides, per navigation, whether the requested path may render."""

    def __init__(self, store: SessionStore,
                 routes: Optional[RouteTable] = None,
                 guards: Sequence[Guard] = GUARDS,
                 debug: bool = config.ONBOARD_AUTH_DEBUG) -> None:
        self.store = store
        self.routes = routes if routes is not None else RouteTable()
        self.guards = guards
        self.debug = debug

    def evaluate(self, path: str) -> Decision:
        """Run the guards for ``path`` against one session snapshot."""
        path = path.rstrip('/') or '/'
        route = self.routes.match(path)
        if route is None or route.public:
            return Allow()
        return self.evaluate_route(self.store.snapshot(), path, route)

    def evaluate_route(self, state: SessionState, path: str, route: Route) \
            -> Decision:
        for guard in self.guards:
            decision = guard(state, path, route)
            if not isinstance(decision, Allow):
                if self.debug:
                    logger.debug('%s declined %s: %r', guard.__name__, path,
                                 decision)
                return decision
        return Allow()
