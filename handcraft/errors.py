from __future__ import annotations


class HandcraftError(Exception):
    """Base class for errors surfaced to the caller."""


class InputError(HandcraftError, ValueError):
    """User-correctable input problem (empty text, bad file type, unusable sample sheet)."""


class ResourceError(HandcraftError, OSError):
    """An image or file could not be read or decoded."""
