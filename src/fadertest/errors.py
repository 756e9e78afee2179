"""Exception types raised by the fader tester.

Only EnumerationError is handled locally (discovery skips the device);
everything else propagates up to the CLI and ends the run.
"""


class FaderTestError(Exception):
    """Base class for all fader tester errors."""


class ConflictError(FaderTestError):
    """Vendor software that owns the device is running (or the process
    table could not be read)."""


class EnumerationError(FaderTestError):
    """A device failed to answer during discovery."""


class SessionNotFoundError(FaderTestError, LookupError):
    """No open session is registered for a physical device id."""


class TransportError(FaderTestError):
    """A USB command or read against an open session failed."""
