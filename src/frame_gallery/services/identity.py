"""Session identity resolution."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from frame_gallery.adapters.local_storage import LocalStorage
from frame_gallery.domain.identifiers import new_session_token

_logger = logging.getLogger(__name__)

SESSION_KEY = "portfolio_session_id"


class IdentityProvider(Protocol):
    """Source of an externally asserted user context (e.g. Farcaster)."""

    async def get_context(self) -> dict[str, object] | None:
        """Return the host context, which may carry a `user` mapping."""


@dataclass
class StaticIdentityProvider(IdentityProvider):
    """Provider that returns a context known up front, or none."""

    context: dict[str, object] | None = None

    async def get_context(self) -> dict[str, object] | None:
        """Return the configured context."""
        return self.context


@dataclass(frozen=True)
class SessionIdentity:
    """The partition key used for all reads and writes of a session."""

    user_id: str
    source: str
    profile: dict[str, object] | None = None

    @property
    def is_external(self) -> bool:
        return self.source == "provider"


@dataclass
class IdentityResolver:
    """Resolves identity: provider context, then stored token, then a new one."""

    provider: IdentityProvider | None
    storage: LocalStorage
    timeout_seconds: float = 5.0
    token_factory: Callable[[], str] = new_session_token

    async def resolve(self) -> SessionIdentity:
        """Return the session identity, never raising for a missing provider."""
        profile = await self._provider_user()
        if profile is not None:
            return SessionIdentity(
                user_id=str(profile["fid"]), source="provider", profile=profile
            )
        stored = self.storage.get_item(SESSION_KEY)
        if stored:
            return SessionIdentity(user_id=stored, source="stored")
        token = self.token_factory()
        self.storage.set_item(SESSION_KEY, token)
        _logger.info("Generated session identity", extra={"user_id": token})
        return SessionIdentity(user_id=token, source="generated")

    async def _provider_user(self) -> dict[str, object] | None:
        if self.provider is None:
            return None
        try:
            context = await asyncio.wait_for(
                self.provider.get_context(), timeout=self.timeout_seconds
            )
        except TimeoutError:
            _logger.warning("Identity context timed out; using session identity")
            return None
        except Exception:
            _logger.exception("Failed to read identity context")
            return None
        user = context.get("user") if isinstance(context, dict) else None
        if isinstance(user, dict) and user.get("fid") is not None:
            return user
        return None
