"""
Onboarding state machine.

A user's onboarding state is never stored. It is derived from their role,
investor type, ``is_verified`` flag and KYC status, and each state has exactly
one canonical destination: the only onboarding screen the user may view.

.. code-block:: none

   role none/missing               -> /choose-profile
   role admin                      -> /admin
   role investor
       no investor type            -> /investor-type
       verified or approved        -> /dashboard
       rejected                    -> verification form for the type
       submitted                   -> /verification-success
       otherwise                   -> verification form for the type
   role startup
       verified or approved        -> /dashboard
       rejected                    -> /apply-for-funding
       submitted                   -> /verification-success
       otherwise                   -> /apply-for-funding

Paths outside :data:`ONBOARDING_PATHS` carry no onboarding constraint.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Union

from onboard_auth.domain import InvestorType, KYCStatus, Role, UserProfile

logger = logging.getLogger(__name__)

CHOOSE_PROFILE = '/choose-profile'
INVESTOR_TYPE = '/investor-type'
INVESTOR_VERIFICATION = '/investor-verification'
CORPORATE_VERIFICATION = '/corporate-verification'
VERIFICATION_SUCCESS = '/verification-success'
APPLY_FOR_FUNDING = '/apply-for-funding'
DASHBOARD = '/dashboard'
ADMIN = '/admin'

ONBOARDING_PATHS: FrozenSet[str] = frozenset({
    CHOOSE_PROFILE,
    INVESTOR_TYPE,
    INVESTOR_VERIFICATION,
    CORPORATE_VERIFICATION,
    VERIFICATION_SUCCESS,
    APPLY_FOR_FUNDING,
    DASHBOARD,
    ADMIN,
})
"""Paths that are legal only as the user's canonical destination."""


class OnboardingState(Enum):
    """Where a user is in the onboarding flow."""

    NO_ROLE = 'no_role'
    INVESTOR_NO_TYPE = 'investor_no_type'
    INVESTOR_NOT_SUBMITTED = 'investor_not_submitted'
    INVESTOR_PENDING = 'investor_pending'
    INVESTOR_APPROVED = 'investor_approved'
    INVESTOR_REJECTED = 'investor_rejected'
    STARTUP_NOT_SUBMITTED = 'startup_not_submitted'
    STARTUP_PENDING = 'startup_pending'
    STARTUP_APPROVED = 'startup_approved'
    STARTUP_REJECTED = 'startup_rejected'
    ADMIN = 'admin'


@dataclass(frozen=True)
class Allow:
    """The requested path may be rendered."""


@dataclass(frozen=True)
class Redirect:
    """The requested path is not legal; go to :attr:`location` instead."""

    location: str
    next_page: Optional[str] = None
    """Path to return to after login, for redirects to the login page."""


Decision = Union[Allow, Redirect]


def _is_approved(profile: UserProfile) -> bool:
    approved = profile.kyc_status is KYCStatus.APPROVED
    if profile.is_verified != approved and profile.kyc_status is not None:
        logger.warning('User %s has isVerified=%s but verification status '
                       '%s', profile.user_id, profile.is_verified,
                       profile.kyc_status.value)
    return profile.is_verified or approved


def derive_state(profile: UserProfile) -> OnboardingState:
    """Classify ``profile`` into an :class:`OnboardingState`."""
    if profile.role is Role.ADMIN:
        return OnboardingState.ADMIN
    if profile.role is Role.INVESTOR:
        if profile.investor_type is InvestorType.NONE:
            return OnboardingState.INVESTOR_NO_TYPE
        if _is_approved(profile):
            return OnboardingState.INVESTOR_APPROVED
        if profile.kyc_status is KYCStatus.REJECTED:
            return OnboardingState.INVESTOR_REJECTED
        if profile.has_submitted:
            return OnboardingState.INVESTOR_PENDING
        return OnboardingState.INVESTOR_NOT_SUBMITTED
    if profile.role is Role.STARTUP:
        if _is_approved(profile):
            return OnboardingState.STARTUP_APPROVED
        if profile.kyc_status is KYCStatus.REJECTED:
            return OnboardingState.STARTUP_REJECTED
        if profile.has_submitted:
            return OnboardingState.STARTUP_PENDING
        return OnboardingState.STARTUP_NOT_SUBMITTED
    return OnboardingState.NO_ROLE


def _verification_form(profile: UserProfile) -> str:
    if profile.investor_type is InvestorType.PERSONAL:
        return INVESTOR_VERIFICATION
    return CORPORATE_VERIFICATION


def canonical_destination(profile: UserProfile) -> str:
    """The single onboarding screen ``profile`` may currently view."""
    state = derive_state(profile)
    if state is OnboardingState.NO_ROLE:
        return CHOOSE_PROFILE
    if state is OnboardingState.ADMIN:
        return ADMIN
    if state is OnboardingState.INVESTOR_NO_TYPE:
        return INVESTOR_TYPE
    if state in (OnboardingState.INVESTOR_APPROVED,
                 OnboardingState.STARTUP_APPROVED):
        return DASHBOARD
    if state in (OnboardingState.INVESTOR_PENDING,
                 OnboardingState.STARTUP_PENDING):
        return VERIFICATION_SUCCESS
    if state in (OnboardingState.INVESTOR_REJECTED,
                 OnboardingState.INVESTOR_NOT_SUBMITTED):
        return _verification_form(profile)
    return APPLY_FOR_FUNDING


def resolve(profile: UserProfile, path: str) -> Decision:
    """
    Decide whether ``profile`` may view ``path``.

    Parameters
    ----------
    profile : :class:`.UserProfile`
    path : str
        The requested path, without query string.

    Returns
    -------
    :class:`Allow` or :class:`Redirect`
        A redirect always points at the canonical destination, so resolving
        the redirect target allows it.

    """
    if path not in ONBOARDING_PATHS:
        return Allow()
    destination = canonical_destination(profile)
    if path == destination:
        return Allow()
    logger.debug('%s is not legal for user %s; canonical destination is %s',
                 path, profile.user_id, destination)
    return Redirect(destination)
