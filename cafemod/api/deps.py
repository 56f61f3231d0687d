from fastapi import Header, Request


def require_trigger_secret(request: Request, authorization: str | None = Header(default=None)) -> None:
    """Raises AuthConfigurationError / UnauthorizedError; mapped to 500 / 401 in main."""
    request.app.state.gate.check(authorization)
