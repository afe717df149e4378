"""
Exception types raised by the superpixel search core.

Structural problems with an input grid are fatal for that image and are
raised immediately. Empty regions and queries without any collision are
ordinary outcomes and never raise.
"""


class SuperpixelSearchError(ValueError):
    """Base class for all superpixel search input errors."""


class ShapeMismatch(SuperpixelSearchError):
    """Label grid and color grid do not describe the same pixels."""


class InvalidLabelValue(SuperpixelSearchError):
    """A label grid cell references a region outside [0, region_count)."""

    def __init__(self, value: int, region_count: int):
        self.value = int(value)
        self.region_count = int(region_count)
        super().__init__(
            f"Label {self.value} outside valid range [0, {self.region_count})"
        )


class PixelCountMismatch(SuperpixelSearchError):
    """Observed region pixel counts disagree with the expected counts."""


class LayoutMismatch(SuperpixelSearchError):
    """A quantizer with a different bucket layout was used against an index."""
