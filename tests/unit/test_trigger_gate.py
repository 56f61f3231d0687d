import logging

import pytest

from cafemod.errors import AuthConfigurationError, UnauthorizedError
from cafemod.services.trigger_gate import TriggerGate


def test_matching_bearer_token_is_admitted():
    TriggerGate("s3cret").check("Bearer s3cret")


@pytest.mark.parametrize("header", [None, "", "s3cret", "Bearer wrong", "bearer s3cret", "Bearer s3cret "])
def test_mismatched_token_is_unauthorized(header):
    with pytest.raises(UnauthorizedError):
        TriggerGate("s3cret").check(header)


@pytest.mark.parametrize("secret", [None, ""])
def test_missing_secret_is_a_configuration_error(secret):
    with pytest.raises(AuthConfigurationError):
        TriggerGate(secret).check("Bearer anything")


def test_configuration_and_auth_failures_log_differently(caplog):
    caplog.set_level(logging.WARNING, logger="cafemod.services.trigger_gate")

    with pytest.raises(AuthConfigurationError):
        TriggerGate(None).check("Bearer x")
    with pytest.raises(UnauthorizedError):
        TriggerGate("s3cret").check("Bearer x")

    levels = [(r.levelno, r.getMessage()) for r in caplog.records]
    assert levels[0][0] == logging.ERROR
    assert "not configured" in levels[0][1]
    assert levels[1][0] == logging.WARNING
    assert "unauthorized" in levels[1][1]
