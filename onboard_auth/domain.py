"""Defines user and session concepts for the onboarding portal."""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, \
    field_validator

from .exceptions import AuthFailure

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Top-level account category."""

    NONE = 'none'
    INVESTOR = 'investor'
    STARTUP = 'startup'
    ADMIN = 'admin'


class InvestorType(str, Enum):
    """Sub-classification of an investor; selects the verification form."""

    NONE = 'none'
    PERSONAL = 'personal'
    CORPORATE = 'corporate'


class KYCStatus(str, Enum):
    """Review state of a KYC submission. Owned by the server."""

    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


def _coerce_status(value: Any) -> Optional[str]:
    if value is None or value == '':
        return None
    if isinstance(value, KYCStatus):
        return value.value
    if value not in {status.value for status in KYCStatus}:
        logger.warning('Unrecognized verification status %r', value)
        return None
    return str(value)


class Verification(BaseModel):
    """The KYC block of a user profile."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore',
                              frozen=True)

    status: Optional[KYCStatus] = None
    """``None`` when the server reports no status at all."""

    submitted_at: Optional[datetime] = Field(default=None, alias='submittedAt')
    """Set once the user has submitted their verification data."""

    reviewed_at: Optional[datetime] = Field(default=None, alias='reviewedAt')
    reviewed_by: Optional[Any] = Field(default=None, alias='reviewedBy')
    rejection_reason: Optional[str] = Field(default=None,
                                            alias='rejectionReason')

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, value: Any) -> Optional[str]:
        return _coerce_status(value)


class UserProfile(BaseModel):
    """
    The authenticated user as reported by the Account Service.

    Profiles are immutable; the session store replaces them wholesale. The
    only local modification is :meth:`with_investor_type`, used after a
    successful ``setInvestorType`` call.
    """

    model_config = ConfigDict(populate_by_name=True, extra='ignore',
                              frozen=True)

    user_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices('_id', 'id', 'user_id'),
        serialization_alias='_id'
    )
    email: str = ''
    name: Optional[str] = None
    phone: Optional[str] = None
    role: Role = Role.NONE
    investor_type: InvestorType = Field(default=InvestorType.NONE,
                                        alias='investorType')
    """Only meaningful when :attr:`role` is ``investor``."""

    is_verified: bool = Field(default=False, alias='isVerified')
    """Authoritative "fully onboarded" signal."""

    is_super: bool = Field(default=False, alias='isSuper')
    """Only meaningful when :attr:`role` is ``admin``."""

    email_verified: bool = Field(default=False, alias='emailVerified')
    created_at: Optional[datetime] = Field(default=None, alias='createdAt')
    verification: Verification = Field(default_factory=Verification)

    @field_validator('role', mode='before')
    @classmethod
    def normalize_role(cls, value: Any) -> str:
        if value is None or value == '':
            return Role.NONE.value
        if isinstance(value, Role):
            return value.value
        if value not in {role.value for role in Role}:
            logger.warning('Unrecognized role %r, treating as none', value)
            return Role.NONE.value
        return str(value)

    @field_validator('investor_type', mode='before')
    @classmethod
    def normalize_investor_type(cls, value: Any) -> str:
        if value is None or value == '':
            return InvestorType.NONE.value
        if isinstance(value, InvestorType):
            return value.value
        return str(value)

    @field_validator('verification', mode='before')
    @classmethod
    def normalize_verification(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def kyc_status(self) -> Optional[KYCStatus]:
        """Shortcut to the verification status."""
        return self.verification.status

    @property
    def has_submitted(self) -> bool:
        """Whether verification data has been submitted."""
        return self.verification.submitted_at is not None

    @property
    def has_chosen_role(self) -> bool:
        return self.role is not Role.NONE

    @property
    def has_chosen_investor_type(self) -> bool:
        return (self.role is Role.INVESTOR
                and self.investor_type is not InvestorType.NONE)

    def with_investor_type(self, investor_type: InvestorType) -> 'UserProfile':
        """Copy of this profile with a new investor type."""
        return self.model_copy(update={'investor_type': investor_type})

    def with_verification_status(self, status: 'VerificationStatus') \
            -> 'UserProfile':
        """Copy of this profile with the KYC state from ``status``."""
        verification = self.verification.model_copy(update={
            'status': status.status,
            'submitted_at': status.submitted_at,
            'reviewed_at': status.reviewed_at,
            'rejection_reason': status.rejection_reason,
        })
        return self.model_copy(update={'verification': verification,
                                       'is_verified': status.is_verified})

    def to_dict(self) -> dict:
        """JSON-ready representation using the Account Service's field names."""
        return self.model_dump(mode='json', by_alias=True)


class VerificationStatus(BaseModel):
    """Projection returned by ``GET /verification/status``."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore',
                              frozen=True)

    status: Optional[KYCStatus] = None
    is_verified: bool = Field(default=False, alias='isVerified')
    submitted_at: Optional[datetime] = Field(default=None, alias='submittedAt')
    reviewed_at: Optional[datetime] = Field(default=None, alias='reviewedAt')
    rejection_reason: Optional[str] = Field(default=None,
                                            alias='rejectionReason')

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, value: Any) -> Optional[str]:
        return _coerce_status(value)


class AuthResult(NamedTuple):
    """
    Outcome of an account operation.

    Exactly one of :attr:`profile` (possibly ``None`` for operations that do
    not return a user) or :attr:`error` is meaningful; check :attr:`ok`.
    """

    profile: Optional[UserProfile] = None
    """The session profile after the operation."""

    error: Optional[AuthFailure] = None
    """The failure, carrying the Account Service's message verbatim."""

    message: Optional[str] = None
    """Informational message from the Account Service, if any."""

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Optional[UserProfile]:
        """Return :attr:`profile`, or raise :attr:`error`."""
        if self.error is not None:
            raise self.error
        return self.profile

    @classmethod
    def failure(cls, error: AuthFailure) -> 'AuthResult':
        return cls(error=error, message=error.message)
