"""
Integration with client-local session state.

The :class:`.SessionStore` keeps the access credential (persisted through a
:class:`onboard_auth.services.storage.TokenStorage`) and the authenticated
user's profile, and runs the start-up restore and silent refresh protocols.

See :mod:`.store`.
"""

from . import store
from .store import SessionState, SessionStore

__all__ = ('store', 'SessionState', 'SessionStore')
