import resilient_client as m
from resilient_client import errors, messages


def test_code_has_priority_over_status():
    msg = m.to_user_message(m.ApiError("x", 401, "TOKEN_EXPIRED"))
    assert msg.title == "Session expired"


def test_401_without_code_asks_to_log_in_again():
    msg = m.to_user_message(m.ApiError("x", 401))
    assert msg.action == "Log in"


def test_rate_limit_and_server_errors_suggest_retry_shortly():
    assert "try again" in m.to_user_message(m.ApiError("x", 429)).message
    assert "try again" in m.to_user_message(m.ApiError("x", 503)).message.lower()


def test_validation_status():
    msg = m.to_user_message(m.ApiError("x", 422))
    assert msg == messages.ERROR_MESSAGES["VALIDATION_ERROR"]


def test_unmapped_code_falls_back_to_status():
    msg = m.to_user_message(m.ApiError("x", 404, "SOMETHING_NEW"))
    assert msg == messages.ERROR_MESSAGES["NOT_FOUND"]


def test_unknown_everything_uses_unknown_entry():
    assert m.to_user_message(m.ApiError("x", 418)) == messages.ERROR_MESSAGES["UNKNOWN_ERROR"]
    assert m.to_user_message(RuntimeError("x")) == messages.ERROR_MESSAGES["UNKNOWN_ERROR"]


def test_local_timeout_maps_to_timeout_message():
    assert m.to_user_message(errors.timeout_error()) == messages.ERROR_MESSAGES["TIMEOUT"]


def test_get_error_message_fallback_text():
    msg = m.get_error_message("NOT_A_CODE", "custom text")
    assert msg.message == "custom text"
    assert msg.action == "OK"

    default = m.get_error_message("NOT_A_CODE")
    assert default.message == messages.ERROR_MESSAGES["UNKNOWN_ERROR"].message
