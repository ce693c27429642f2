from __future__ import annotations


class UpstreamError(Exception):
    def __init__(self, error_type: str, detail: str = ""):
        super().__init__(f"{error_type}: {detail}")
        self.error_type = error_type
        self.detail = detail


class UpstreamExhausted(UpstreamError):
    """Every planned attempt failed; ``last_error`` is the last payload seen."""

    def __init__(self, last_error: object, attempts: int):
        super().__init__(ERROR_EXHAUSTED, f"{attempts} attempts failed")
        self.last_error = last_error
        self.attempts = attempts


ERROR_EXHAUSTED = "EXHAUSTED"
ERROR_GRAPHQL = "GRAPHQL_ERROR"
ERROR_DECODE = "DECODE_ERROR"
ERROR_HTTP = "HTTP_ERROR"
ERROR_TRANSPORT = "TRANSPORT_ERROR"
