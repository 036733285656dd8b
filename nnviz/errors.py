"""Error taxonomy shared by the decode, build and layout stages."""


class ViewerError(Exception):
    """Base class for recoverable pipeline failures."""

    stage = "pipeline"


class DecodeError(ViewerError):
    """The input buffer does not conform to the model schema."""

    stage = "decode"


class BuildError(ViewerError):
    """The decoded model could not be turned into a consistent canonical graph."""

    stage = "build"


class LayoutError(ViewerError):
    """The layered layout could not place the graph."""

    stage = "layout"


class EmptyGraphWarning(UserWarning):
    """The model decoded fine but contains no nodes."""
