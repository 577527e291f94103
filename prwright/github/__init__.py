"""GitHub repository access."""

from prwright.github.base import RepositoryClient, decode_content, encode_content
from prwright.github.client import GitHubClient

__all__ = ["RepositoryClient", "GitHubClient", "decode_content", "encode_content"]
