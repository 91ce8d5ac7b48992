# src/telemetry_bridge/utils/exceptions.py

class BridgeError(Exception):
    """Base exception class for the telemetry bridge"""
    pass

class ConfigurationError(BridgeError):
    """Raised when the settings or the schema are invalid. Fatal at startup."""
    pass

class InitializationError(BridgeError):
    """Raised when component initialization fails"""
    pass

class ValidationError(BridgeError):
    """Raised when a request breaks a policy (missing field, extension, size)"""
    pass

class NotFoundError(BridgeError):
    """Raised when a file, action or policy does not exist"""
    pass

class AccessDeniedError(BridgeError):
    """Raised when a path escapes its configured root.

    The message is always generic so no filesystem layout leaks to callers.
    """
    def __init__(self, message: str = "Access denied"):
        super().__init__(message)

class CommunicationError(BridgeError):
    """Raised when communication with the message bus fails"""
    pass

class BrokerUnavailableError(CommunicationError):
    """Raised when the broker stays unreachable after an on-demand reconnect"""
    pass

class DecodeError(BridgeError):
    """Raised by sensor decoders when a payload cannot be decoded"""
    pass
