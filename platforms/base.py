"""
Capability contract every platform client implements.

Clients agree on return types, not on argument shapes: get_repository_stats() takes the
platform's own identity variant and refuses any other.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from errors import IdentityMismatchError
from normalize.models import PlatformId, RepositoryIdentity, RepositoryStats, RepositorySummary
from settings import Settings, get_settings
from transport import http


class PlatformClient(ABC):
    """Base class for GitHub, GitLab and Bitbucket clients."""

    platform: PlatformId
    identity_type: type
    url_setting: str
    # GitHub, GitLab and Bitbucket all cap per_page / pagelen at 100
    max_page_size: int = 100

    def __init__(self, token: str, base_url: Optional[str] = None, settings: Optional[Settings] = None):
        self.token = token
        self.settings = settings or get_settings()
        self.base_url = (base_url or getattr(self.settings, self.url_setting)).rstrip('/')
        self.headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
        }

    def __repr__(self):
        return f"{type(self).__name__}(base_url={self.base_url!r})"

    @property
    def timeout(self) -> float:
        return self.settings.request_timeout_seconds

    @property
    def page_size(self) -> int:
        """Configured page size, clamped to what the platform will actually serve."""
        return max(1, min(self.settings.page_size, self.max_page_size))

    def _url(self, path: str) -> str:
        return path if path.startswith('http') else f"{self.base_url}{path}"

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> http.HttpResult:
        return await http.get(self._url(path), self.headers, params=params, timeout=self.timeout, platform=self.platform.value)

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        result = await self._get(path, params)
        return result.body

    def _check_identity(self, identity: Any) -> None:
        if not isinstance(identity, self.identity_type):
            raise IdentityMismatchError(
                f"{type(self).__name__} expects {self.identity_type.__name__}, got {type(identity).__name__}",
                platform=self.platform.value,
            )

    @abstractmethod
    async def list_repositories(self) -> List[RepositorySummary]:
        """All repositories visible to the credential, pagination drained."""

    @abstractmethod
    async def get_repository_stats(self, identity: RepositoryIdentity) -> RepositoryStats:
        """Normalized statistics for one repository."""

    @abstractmethod
    def identity_for(self, summary: RepositorySummary) -> RepositoryIdentity:
        """Build this platform's identity variant from a listed repository."""

    @abstractmethod
    async def verify_connection(self) -> Dict[str, Any]:
        """Return the authenticated account; raises AuthenticationError for a bad token."""

    def _check_summary(self, summary: RepositorySummary) -> None:
        if summary.platform != self.platform:
            raise IdentityMismatchError(
                f"Repository {summary.full_name} belongs to {summary.platform.value}, not {self.platform.value}",
                platform=self.platform.value,
            )
