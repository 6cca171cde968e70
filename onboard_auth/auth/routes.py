"""
Declarative route table for the portal.

Each :class:`Route` states which guards apply to it. Path matching uses a
werkzeug URL map, so parameterized routes such as
``/admin/verification/<user_id>`` resolve to their declaration.
"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, NamedTuple, Optional, Tuple

from werkzeug.exceptions import HTTPException
from werkzeug.routing import Map, Rule, RoutingException

from onboard_auth.domain import Role


class AdminTier(Enum):
    """Admin privilege a route requires."""

    NONE = 'none'
    ALL = 'all'
    """Any admin."""

    SUPERADMIN = 'superadmin'
    """Only admins with ``isSuper``."""


class Route(NamedTuple):
    """A portal path and the guards it requires."""

    rule: str
    """werkzeug rule string, e.g. ``/plans/<plan_id>``."""

    roles: FrozenSet[Role] = frozenset()
    """Roles allowed to view the route. Empty means any authenticated user."""

    onboarding: bool = False
    """Apply the onboarding resolver."""

    admin: AdminTier = AdminTier.NONE
    public: bool = False
    """No session required; no other guard applies."""


INVESTOR = frozenset({Role.INVESTOR})
STARTUP = frozenset({Role.STARTUP})
MEMBERS = frozenset({Role.INVESTOR, Role.STARTUP})
ADMINS = frozenset({Role.ADMIN})

ROUTES: Tuple[Route, ...] = (
    Route('/', public=True),
    Route('/about', public=True),
    Route('/asset-financing', public=True),
    Route('/plans', public=True),
    Route('/plans/<plan_id>', public=True),
    Route('/team', public=True),
    Route('/contact', public=True),
    Route('/login', public=True),
    Route('/register', public=True),
    Route('/forgot-password', public=True),
    Route('/verify-email', public=True),
    Route('/reset-password', public=True),

    Route('/choose-profile', onboarding=True),
    Route('/investor-type', onboarding=True),
    Route('/corporate-verification', onboarding=True),
    Route('/investor-verification', roles=INVESTOR, onboarding=True),
    Route('/verification-success', roles=MEMBERS, onboarding=True),
    Route('/apply-for-funding', roles=STARTUP, onboarding=True),
    Route('/dashboard', roles=MEMBERS, onboarding=True),
    Route('/profile', roles=MEMBERS | ADMINS),

    Route('/admin', roles=ADMINS, admin=AdminTier.ALL),
    Route('/admin/verification', roles=ADMINS, admin=AdminTier.ALL),
    Route('/admin/verification/<user_id>', roles=ADMINS,
          admin=AdminTier.ALL),
    Route('/admin/users', roles=ADMINS, admin=AdminTier.ALL),
    Route('/admin/carousel', roles=ADMINS, admin=AdminTier.ALL),
    Route('/admin/sub-admins', roles=ADMINS, admin=AdminTier.SUPERADMIN),
)


class RouteTable(object):
    """Matches request paths against a set of :class:`Route` declarations."""

    def __init__(self, routes: Iterable[Route] = ROUTES) -> None:
        self.routes: Dict[str, Route] = {route.rule: route
                                         for route in routes}
        self.url_map = Map([Rule(rule, endpoint=rule)
                            for rule in self.routes],
                           strict_slashes=False)
        self._adapter = self.url_map.bind('localhost')

    def match(self, path: str) -> Optional[Route]:
        """The route declared for ``path``, or ``None`` if it is unknown."""
        try:
            endpoint, _ = self._adapter.match(path.rstrip('/') or '/')
        except (HTTPException, RoutingException):
            return None
        return self.routes.get(endpoint)

    def __iter__(self):
        return iter(self.routes.values())
