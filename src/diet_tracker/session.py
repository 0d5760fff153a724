"""Sesion de identidad: envuelve un proveedor externo de autenticacion."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from itertools import count
from types import TracebackType

from diet_tracker.errors import AuthError

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


@dataclass(frozen=True)
class DisplayIdentity:
    """What the UI shows for the signed-in user."""

    name: str | None = None
    email: str | None = None


class IdentityProvider(ABC):
    """Abstract identity provider (the protocol lives outside this package)."""

    @abstractmethod
    def current_identity(self) -> DisplayIdentity | None:
        """Return the signed-in identity, or None when signed out."""

    @abstractmethod
    async def sign_in(self) -> DisplayIdentity | None:
        """Run the provider's sign-in flow.

        Returns:
            The new identity, or None if the user cancelled.
        """

    @abstractmethod
    async def sign_out(self) -> None:
        """Forget the current identity."""


class LocalProfileProvider(IdentityProvider):
    """Provider backed by a locally configured profile (no remote account)."""

    def __init__(self, name: str | None, email: str | None) -> None:
        self._profile = (
            DisplayIdentity(name=name, email=email) if name or email else None
        )
        self._current: DisplayIdentity | None = None

    def current_identity(self) -> DisplayIdentity | None:
        return self._current

    async def sign_in(self) -> DisplayIdentity | None:
        if self._profile is None:
            raise AuthError("No local profile configured")
        self._current = self._profile
        return self._current

    async def sign_out(self) -> None:
        self._current = None


class IdentitySession:
    """Explicitly owned session state, created at startup and closed at exit."""

    def __init__(self, provider: IdentityProvider) -> None:
        self._provider = provider
        self._listeners: dict[int, Listener] = {}
        self._ids = count()
        self._closed = False

    def is_signed_in(self) -> bool:
        self._check_open()
        return self._provider.current_identity() is not None

    def current_display_identity(self) -> DisplayIdentity:
        """Current identity; empty fields when signed out."""
        self._check_open()
        return self._provider.current_identity() or DisplayIdentity()

    async def sign_in(self) -> DisplayIdentity | None:
        """Sign in through the provider.

        Returns:
            The identity, or None when the user cancelled.

        Raises:
            AuthError: If the provider fails.
        """
        self._check_open()
        try:
            identity = await self._provider.sign_in()
        except AuthError:
            logger.exception("Sign-in failed")
            raise
        except Exception as exc:
            logger.exception("Sign-in failed")
            raise AuthError(str(exc)) from exc
        if identity is None:
            logger.info("Sign-in cancelled")
            return None
        logger.info("Signed in as %s", identity.email or identity.name)
        self._notify()
        return identity

    async def sign_out(self) -> None:
        """Sign out through the provider.

        Raises:
            AuthError: If the provider fails.
        """
        self._check_open()
        try:
            await self._provider.sign_out()
        except AuthError:
            raise
        except Exception as exc:
            raise AuthError(str(exc)) from exc
        logger.info("Signed out")
        self._notify()

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Register ``callback`` for sign-in/out changes; returns unsubscribe."""
        self._check_open()
        token = next(self._ids)
        self._listeners[token] = callback

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def close(self) -> None:
        self._listeners.clear()
        self._closed = True

    def __enter__(self) -> IdentitySession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Identity session is closed")

    def _notify(self) -> None:
        for callback in list(self._listeners.values()):
            callback()
