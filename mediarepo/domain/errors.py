# mediarepo/domain/errors.py
"""
Exceptions for contract violations and hard preconditions.

Operational failures of a transform (bad parameters, codec errors, a failed
import) are *not* raised: they come back as ``TransformError`` results.
"""
from __future__ import annotations


class MediaRepoError(Exception):
    """Base class for mediarepo exceptions."""


class RepoNotDefinedError(MediaRepoError):
    """A storage-dependent operation was invoked on an identity without a repository."""


class InvalidTitleError(MediaRepoError, ValueError):
    """A name could not be normalized into a valid file title."""


class NoHandlerError(MediaRepoError):
    """No media handler is registered for the identity's MIME type."""


class ReadOnlyError(MediaRepoError):
    """A write was attempted against a read-only repository or identity."""
