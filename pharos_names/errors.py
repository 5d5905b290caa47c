"""Error taxonomy for the registrar."""


class RegistrarError(Exception):
    """Base class for every error raised by pharos_names."""


class ConfigurationError(RegistrarError):
    """Missing or malformed configuration. Fatal before any wallet starts."""


class CapabilityUnsupported(RegistrarError):
    """The deployed controller does not expose the requested method."""

    def __init__(self, operation):
        super().__init__(f"Controller does not support {operation}")
        self.operation = operation


class TransientChainError(RegistrarError):
    """RPC, network or contract-level failure (revert, timeout, funds)."""

    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason


def failure_reason(exc):
    """Turn any exception into a short human readable reason.

    Tries a structured ``reason`` first, then a short ``message``, then the
    string form, and finally the exception class name.
    """
    for attr in ("reason", "message"):
        value = getattr(exc, attr, None)
        if isinstance(value, str) and value.strip():
            return value.strip()
    text = str(exc).strip()
    if text:
        return text
    return type(exc).__name__
