from enum import Enum


class ErrorKind(str, Enum):
    TRANSIENT_NETWORK = "transient_network"
    RATE_LIMITED = "rate_limited"
    SERVER_FAULT = "server_fault"
    CLIENT_REJECTION = "client_rejection"
    ACCESS_DENIED = "access_denied"
    SCHEMA_UNAVAILABLE = "schema_unavailable"
    CONNECTION_UNREACHABLE = "connection_unreachable"


class ProbeError(Exception):
    """Run-level fault. Carries the taxonomy kind alongside the message."""
    kind = ErrorKind.TRANSIENT_NETWORK

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.message = message
        self.status = status


class ConnectionUnreachable(ProbeError):
    kind = ErrorKind.CONNECTION_UNREACHABLE


class SchemaUnavailable(ProbeError):
    kind = ErrorKind.SCHEMA_UNAVAILABLE
