"""
Custom exception hierarchy for the image organizer.

Per-file errors are recovered or isolated by the processor; only
DataUnavailable and ConfigurationError stop the program at startup, and
WatchError stops a watch session that cannot keep its observer running.
"""


class ImageOrganizerError(Exception):
    """Base exception for all image organizer errors."""
    pass


class DataUnavailable(ImageOrganizerError):
    """Raised when the reference location dataset cannot be read."""
    pass


class MetadataParseError(ImageOrganizerError):
    """Raised when a single embedded metadata field cannot be decoded."""
    pass


class EnrichmentError(ImageOrganizerError):
    """Raised when the tagging endpoint fails or returns an unusable response."""
    pass


class PlacementError(ImageOrganizerError):
    """Raised when writing, copying or moving a file fails."""
    pass


class ConfigurationError(ImageOrganizerError):
    """Raised when a command line value cannot be interpreted."""
    pass


class WatchError(ImageOrganizerError):
    """Raised when the file watcher keeps dying and cannot be restarted."""
    pass
