"""Bearer credential holder for the remote store."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

_logger = logging.getLogger(__name__)


@dataclass
class AuthSession:
    """Holds the bearer token yielded by the sign-in flow."""

    token: str | None = None
    on_invalidate: list[Callable[[], None]] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        """True while a credential is available."""
        return bool(self.token)

    def bearer_token(self) -> str | None:
        """Return the current bearer token, if any."""
        return self.token

    def sign_in(self, token: str) -> None:
        """Replace the credential after a successful authentication."""
        self.token = token

    def invalidate(self) -> None:
        """Drop the credential and notify listeners."""
        if self.token is None:
            return
        _logger.warning("Auth session invalidated")
        self.token = None
        for callback in self.on_invalidate:
            callback()
