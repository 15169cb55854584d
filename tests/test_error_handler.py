from mpesa_relay.error_handler import ErrorHandler
from mpesa_relay.integrations.errors import AuthError, GatewayError, ValidationError


def test_handle_exception_returns_payload():
    eh = ErrorHandler(debug=True)
    out = eh.handle_exception(Exception("boom"), context={"k": "v"})
    assert out["success"] is False
    assert out["error"] == "Internal server error"
    assert out["message"] == "boom"


def test_handle_exception_hides_message_outside_development():
    out = ErrorHandler(debug=False).handle_exception(Exception("boom"))
    assert "message" not in out


def test_validation_error_body_is_minimal():
    body = ErrorHandler().relay_error_body(ValidationError("Phone and amount are required."))
    assert body == {"success": False, "error": "Phone and amount are required."}


def test_gateway_error_body_includes_details():
    exc = GatewayError("Bad Request - Invalid Amount", status_code=400, details={"errorCode": "400.002.02"})
    body = ErrorHandler().relay_error_body(exc)
    assert body["success"] is False
    assert body["details"] == {"errorCode": "400.002.02"}
    assert "timestamp" in body
    assert exc.http_status == 502


def test_auth_error_body_hides_details():
    body = ErrorHandler().relay_error_body(AuthError("Failed to get access token", details={"reason": "x"}))
    assert body["details"] is None
    assert body["error"] == "Failed to get access token"
