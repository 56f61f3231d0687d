import hmac
import logging

from cafemod.errors import AuthConfigurationError, UnauthorizedError

logger = logging.getLogger(__name__)


class TriggerGate:
    """Bearer-token check against a secret fixed at construction."""

    def __init__(self, secret: str | None) -> None:
        self._secret = secret or None

    def check(self, authorization: str | None) -> None:
        if self._secret is None:
            logger.error("[gate] trigger secret not configured")
            raise AuthConfigurationError("Cron not configured")
        expected = f"Bearer {self._secret}".encode()
        presented = (authorization or "").encode()
        if not hmac.compare_digest(presented, expected):
            logger.warning("[gate] unauthorized trigger attempt")
            raise UnauthorizedError("Unauthorized")
