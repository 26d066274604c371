"""Error taxonomy for the capture, encoding and streaming pipeline.

Every error carries a ``fatal`` flag. Fatal errors are surfaced through
``on_error`` and force teardown of the whole pipeline; everything else is
contained where it happens.
"""


class LiveLingoError(Exception):
    """Base class for all LiveLingo errors."""
    fatal = False


class CaptureError(LiveLingoError):
    """No usable audio input, or the device could not be opened."""
    fatal = True


class SessionConnectionError(LiveLingoError):
    """A single connect attempt to the live service failed."""


class StartupError(LiveLingoError):
    """Connecting failed after all retries were exhausted."""
    fatal = True


class TransportError(LiveLingoError):
    """Sending on an established connection failed."""


class EncodingError(LiveLingoError):
    """An encoded audio chunk violated its size bounds."""


class MessageParseError(LiveLingoError):
    """An inbound message could not be understood."""


class ServiceError(LiveLingoError):
    """The remote service reported an error inside a message."""
