"""Repository metadata providers."""

from .github import (
    GitHubMetadataProvider,
    InvalidReferenceError,
    MetadataError,
    RateLimitedError,
    RepositoryNotFoundError,
)

__all__ = [
    "GitHubMetadataProvider",
    "InvalidReferenceError",
    "MetadataError",
    "RateLimitedError",
    "RepositoryNotFoundError",
]
