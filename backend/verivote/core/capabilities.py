"""
Check sets for the collector and the registration service.

A compromised component is the same component with some checks
switched off; honest deployments keep every flag on.
"""
from dataclasses import dataclass, fields, replace
from typing import Iterable, List

from verivote.core.config import settings


@dataclass(frozen=True)
class _Capabilities:

    @classmethod
    def names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def without(cls, disabled: Iterable[str]):
        """All checks on except those named in disabled."""
        disabled = list(disabled)
        unknown = set(disabled) - set(cls.names())
        if unknown:
            raise ValueError(f"Unknown {cls.__name__} checks: {sorted(unknown)}")
        return replace(cls(), **{name: False for name in disabled})

    @property
    def honest(self) -> bool:
        return all(getattr(self, name) for name in self.names())


@dataclass(frozen=True)
class CollectorCapabilities(_Capabilities):
    """Checks performed by the vote collector and its verification read path."""
    check_auth_signature: bool = True
    check_duplicates: bool = True
    check_vote_signature: bool = True
    check_proof: bool = True
    check_receipt: bool = True
    check_freshness: bool = True
    check_verification_window: bool = True
    check_verification_final: bool = True
    check_verification_signatures: bool = True


@dataclass(frozen=True)
class RegistrationCapabilities(_Capabilities):
    """Checks performed by the registration service."""
    check_collector_signature: bool = True
    check_identifier_binding: bool = True
    check_hash_binding: bool = True


def collector_capabilities_from_settings() -> CollectorCapabilities:
    return CollectorCapabilities.without(settings.COLLECTOR_DISABLED_CHECKS)


def registration_capabilities_from_settings() -> RegistrationCapabilities:
    return RegistrationCapabilities.without(settings.REGISTRATION_DISABLED_CHECKS)
