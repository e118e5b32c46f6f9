from __future__ import annotations


class BeamformError(ValueError):
    """Base class for session and geometry problems that abort a run."""


class MalformedGeometryFile(BeamformError):
    pass


class ChannelCountMismatch(BeamformError):
    pass


class SampleRateMismatch(BeamformError):
    pass


class ParameterNotFound(BeamformError):
    pass


class ShortRead(EOFError):
    """Requested sample range extends past the end of a stream.

    Not a failure: the window scheduler treats it as end-of-data.
    """

    def __init__(self, start: int, stop: int, frames: int):
        super().__init__(f"Requested samples [{start}, {stop}) but stream has {frames}")
        self.start = start
        self.stop = stop
        self.frames = frames
