"""
Errors raised by the focus engine. Each one knows the HTTP status it maps to;
main.py renders them in a single exception handler.
"""


class FocusError(Exception):
    status_code = 400
    code = "focus_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class Unauthenticated(FocusError):
    status_code = 401
    code = "unauthenticated"


class NotFound(FocusError):
    status_code = 404
    code = "not_found"


class InvalidApiKey(NotFound):
    # The extension treats 401 as "forget this key"
    status_code = 401
    code = "invalid_api_key"


class InvalidTransition(FocusError):
    status_code = 409
    code = "invalid_transition"


class InvalidInput(FocusError):
    status_code = 400
    code = "invalid_input"
