"""
Identity -- the acting user behind every mutating call.

The session/user provider is an external collaborator.  Services receive an
``IdentityProvider`` and ask it for the current ``Actor`` once per call; the
actor's email stamps ``Last_Action_By`` / ``Created_By`` / audit ``By``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Actor:
    """The acting user."""
    email: str
    display_name: str = ""

    @classmethod
    def from_email(cls, email: str) -> Actor:
        """Build an actor whose display name is the email's local part."""
        return cls(email=email, display_name=email.split("@")[0])


class IdentityProvider(ABC):
    """Supplies the acting user, or ``None`` when nobody is signed in."""

    @abstractmethod
    def current_user(self) -> Actor | None:
        ...


class StaticIdentityProvider(IdentityProvider):
    """Always returns the same actor; switchable with ``act_as``."""

    def __init__(self, actor: Actor | None = None):
        self._actor = actor

    def current_user(self) -> Actor | None:
        return self._actor

    def act_as(self, actor: Actor | None) -> None:
        self._actor = actor
