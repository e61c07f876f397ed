"""Privileged-identity allowlist.

Privileged identities skip rate limiting, the variation clamp and credit
charges.
"""

import os
from typing import Iterable

from predictionengine.models.requests import RequesterIdentity


def _normalize(email: str) -> str:
    return email.strip().lower()


class AccessPolicy:
    """Decides whether a requester is privileged (unlimited)."""

    def __init__(self, privileged_emails: Iterable[str] | None = None):
        """
        Args:
            privileged_emails: Allowlisted emails (defaults to the comma-separated
                PRIVILEGED_EMAILS env var)
        """
        if privileged_emails is None:
            privileged_emails = os.getenv("PRIVILEGED_EMAILS", "").split(",")
        self.privileged_emails = frozenset(_normalize(e) for e in privileged_emails if e and e.strip())

    def is_privileged_email(self, email: str | None) -> bool:
        if not email:
            return False
        return _normalize(email) in self.privileged_emails

    def is_privileged(self, identity: RequesterIdentity | None) -> bool:
        if identity is None:
            return False
        return self.is_privileged_email(identity.email)
