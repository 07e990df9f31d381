class SandboxCIError(Exception):
    """Base class for sandboxci errors."""


class ArchiveError(SandboxCIError):
    """Base class for archive engine errors."""


# Input validation
class NotFoundError(ArchiveError):
    pass


class EmptyDirectoryError(ArchiveError):
    pass


class UnsafePathError(ArchiveError):
    pass


# Compression/verification
class ValidationError(ArchiveError):
    pass


class CountMismatchError(ArchiveError):
    pass


class MissingFileError(ArchiveError):
    pass


class IntegrityError(ArchiveError):
    pass


class DecompressionError(ArchiveError):
    pass


class ManifestFormatError(ArchiveError):
    pass


class ArchiveIOError(ArchiveError):
    """Filesystem failure while reading or writing archive data."""


# Collaborators
class WebhookError(SandboxCIError):
    pass


class SandboxError(SandboxCIError):
    pass
