"""
Application-level exceptions raised by the review and repository services.
"""


class CodeRevUError(Exception):
    """Base exception for service errors."""

    pass


class RepositoryNotFoundError(CodeRevUError):
    """Raised when a repository is not connected locally."""

    pass


class CredentialNotFoundError(CodeRevUError):
    """Raised when a user has no linked GitHub access token."""

    pass


class QuotaExceededError(CodeRevUError):
    """Raised when the user's subscription tier does not allow the action."""

    pass


class ReviewTriggerError(CodeRevUError):
    """Raised when a review job cannot be queued."""

    pass


class RepositoryAlreadyConnectedError(CodeRevUError):
    """Raised when a GitHub repository is already connected."""

    pass
