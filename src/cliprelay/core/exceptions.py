"""
Exceptions for the cliprelay core module
Everything the relay raises on purpose derives from ClipRelayError
"""


class ClipRelayError(Exception):
    # general container for errors
    pass


class ConfigError(ClipRelayError):
    # raised when the config file or the endpoint settings are invalid
    pass


class EndpointError(ClipRelayError):
    # raised when the listening endpoint cannot be bound
    pass


class ClipboardError(ClipRelayError):
    # raised when the platform clipboard refuses the write
    pass
