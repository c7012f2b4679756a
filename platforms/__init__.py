"""
Platforms package: GitHub, GitLab and Bitbucket clients behind one capability contract.
"""

from .base import PlatformClient
from .bitbucket import BitbucketClient
from .factory import GitService, create_client
from .github import GitHubClient
from .gitlab import GitLabClient

__all__ = ["PlatformClient", "GitService", "create_client", "GitHubClient", "GitLabClient", "BitbucketClient"]
