from __future__ import annotations

import asyncio
import logging

from consultant_agent.observability import (
    install_background_error_filter,
    is_suppressed_background_error,
)


def test_known_background_noise_is_recognized():
    assert is_suppressed_background_error({"exception": ConnectionResetError()})
    assert is_suppressed_background_error(
        {"message": "Task exception", "exception": RuntimeError("Failed to fetch")}
    )
    assert is_suppressed_background_error({"message": "analytics flush failed"})
    assert not is_suppressed_background_error(
        {"message": "Task exception", "exception": ValueError("bad state")}
    )


def test_filter_delegates_other_errors(caplog):
    forwarded = []
    loop = asyncio.new_event_loop()
    try:
        loop.set_exception_handler(lambda _loop, context: forwarded.append(context))
        install_background_error_filter(loop)

        with caplog.at_level(logging.WARNING):
            loop.call_exception_handler(
                {"message": "Task exception", "exception": TimeoutError()}
            )
            loop.call_exception_handler(
                {"message": "Task exception", "exception": KeyError("x")}
            )
    finally:
        loop.close()

    assert len(forwarded) == 1
    assert isinstance(forwarded[0]["exception"], KeyError)
    assert "Suppressed background error" in caplog.text
