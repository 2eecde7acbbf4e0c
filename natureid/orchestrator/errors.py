from typing import Optional

ERR_INVALID_INPUT = "INVALID_INPUT"
ERR_NOT_CONFIGURED = "NOT_CONFIGURED"
ERR_UPSTREAM = "UPSTREAM_ERROR"
ERR_EMPTY_RESPONSE = "EMPTY_RESPONSE"
ERR_MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
ERR_IDENTIFY_FAILED = "IDENTIFY_FAILED"
ERR_STORAGE = "STORAGE_ERROR"
ERR_NOT_FOUND = "NOT_FOUND"
ERR_TOO_LARGE = "PAYLOAD_TOO_LARGE"
ERR_UNKNOWN = "UNKNOWN"


class NatureIdError(Exception):
    status_code = 500
    error_code = ERR_UNKNOWN

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(NatureIdError):
    status_code = 400
    error_code = ERR_INVALID_INPUT


class InvalidImageError(InvalidInputError):
    pass


class ConfigurationError(NatureIdError):
    error_code = ERR_NOT_CONFIGURED


class UpstreamTransportError(NatureIdError):
    error_code = ERR_UPSTREAM

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class EmptyResponseError(NatureIdError):
    error_code = ERR_EMPTY_RESPONSE


class MalformedResponseError(NatureIdError):
    """Reply had content but not the expected JSON shape. Recovered by the client."""
    error_code = ERR_MALFORMED_RESPONSE


class IdentificationError(NatureIdError):
    error_code = ERR_IDENTIFY_FAILED


class StorageError(NatureIdError):
    """History write failed. Logged only, never returned to the caller."""
    error_code = ERR_STORAGE


class NotFoundError(NatureIdError):
    status_code = 404
    error_code = ERR_NOT_FOUND
