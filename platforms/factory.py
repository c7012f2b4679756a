"""
Service factory: the single place that maps a platform identifier to a client class.
"""
from typing import Dict, Optional, Type, Union

from normalize.models import Credential, PlatformId
from settings import Settings
from .base import PlatformClient
from .bitbucket import BitbucketClient
from .github import GitHubClient
from .gitlab import GitLabClient

# adding a platform means adding a client module and one entry here
CLIENTS: Dict[PlatformId, Type[PlatformClient]] = {
    PlatformId.GITHUB: GitHubClient,
    PlatformId.GITLAB: GitLabClient,
    PlatformId.BITBUCKET: BitbucketClient,
}


class GitService:
    """Entry point callers use to obtain a platform client. Clients are not cached."""

    @staticmethod
    def create(platform: Union[PlatformId, str], token: str, settings: Optional[Settings] = None) -> PlatformClient:
        platform_id = PlatformId.parse(platform)
        return CLIENTS[platform_id](token, settings=settings)


def create_client(credential: Credential, settings: Optional[Settings] = None) -> PlatformClient:
    return GitService.create(credential.platform, credential.token, settings=settings)


__all__ = ["CLIENTS", "GitService", "create_client"]
