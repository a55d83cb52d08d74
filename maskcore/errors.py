"""
Exceptions raised by the mask engine.
"""


class MaskEngineError(Exception):
    """Base exception for mask engine failures."""

    pass


class NoImageLoadedError(MaskEngineError):
    """A raster operation was requested before an image was loaded."""

    pass


class InvalidPatchSizeError(MaskEngineError):
    """Patch byte length does not match the target region."""

    pass


class InvalidClassError(MaskEngineError):
    """Class value outside the supported range."""

    pass


class ImageLoadError(MaskEngineError):
    """The raster for a new image could not be created."""

    pass
