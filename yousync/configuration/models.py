"""Models for configuration between CLI arguments and environment variables."""

from dataclasses import dataclass
from pathlib import Path

from yousync.synchronize.mapping import FieldMappingPolicy


@dataclass
class SyncConfig:
    """Configuration class for the sync command."""

    debug: bool
    owner: str
    repo: str
    youtrack_url: str
    project_query: str
    github_api_url: str
    github_token: str
    youtrack_token: str
    state_dir: Path
    max_concurrency: int
    policy: FieldMappingPolicy

    @property
    def owner_repo(self) -> str:
        return f"{self.owner}/{self.repo}"
