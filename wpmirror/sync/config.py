"""
Endpoint Configuration for the WordPress Mirror Sync.

This module defines the configuration format for WordPress sources and their
GitHub destinations. A configuration file lists endpoints; each endpoint pairs
one WordPress site with one repository branch and the paths where posts,
pages and media are stored.
"""

import yaml
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import urlparse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import (
    WORDPRESS_API_PATH, DEFAULT_FETCH_RETRIES, DEFAULT_RETRY_DELAY_SECONDS
)


class GitHubTarget(BaseModel):
    """Destination repository coordinates for one endpoint."""
    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., description="Repository owner")
    repo: str = Field(..., description="Repository name")
    branch: str = Field(..., description="Target branch")
    sync_media: bool = Field(default=False, description="Whether binary media is synced")
    media_path: str = Field(default="wordpress/media", description="Storage path for media")
    post_path: str = Field(default="wordpress/posts", description="Storage path for posts")
    page_path: str = Field(default="wordpress/pages", description="Storage path for pages")

    @field_validator('media_path', 'post_path', 'page_path')
    @classmethod
    def strip_slashes(cls, v):
        """Storage paths are repository-relative without surrounding slashes."""
        return v.strip('/')

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def tree_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/tree/{self.branch}"


class Endpoint(BaseModel):
    """One WordPress source paired with one GitHub destination."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique endpoint name")
    wordpress_url: str = Field(..., description="WordPress site URL")
    github_target: GitHubTarget = Field(..., description="Destination repository")
    exclude_properties: List[str] = Field(default_factory=list, description="Fields removed from output records")
    enabled: bool = Field(default=True, description="Run in live mode")
    enabled_local: bool = Field(default=False, description="Run in debug/local mode")
    reporting_channel_slack: Optional[str] = Field(None, description="Slack channel for change reports")

    @field_validator('wordpress_url')
    @classmethod
    def validate_url(cls, v):
        """Validate URL format."""
        result = urlparse(v)
        if not all([result.scheme, result.netloc]):
            raise ValueError('Invalid URL format')
        return v.rstrip('/')

    @property
    def api_url(self) -> str:
        return self.wordpress_url + WORDPRESS_API_PATH

    def is_active(self, debug_mode: bool) -> bool:
        return self.enabled_local if debug_mode else self.enabled


class SyncConfig(BaseModel):
    """Main configuration for the WordPress mirror sync."""
    name: str = Field(..., description="Configuration name")
    endpoints: List[Endpoint] = Field(..., description="Endpoints, processed in order")
    debug_channel: Optional[str] = Field(None, description="Slack channel for run error reports")
    source_code_url: Optional[str] = Field(None, description="Provenance link written into file metadata")

    # Retry configuration
    fetch_retries: int = Field(default=DEFAULT_FETCH_RETRIES, ge=0, description="Retries after the first attempt")
    retry_delay_seconds: float = Field(default=DEFAULT_RETRY_DELAY_SECONDS, ge=0, description="Fixed delay between attempts")

    # Logging configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[str] = Field(None, description="Log file path")

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'SyncConfig':
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)

        return cls(**data)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode='json')

        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    def get_endpoint_by_name(self, name: str) -> Optional[Endpoint]:
        """Get endpoint configuration by name."""
        for endpoint in self.endpoints:
            if endpoint.name == name:
                return endpoint
        return None

    def select_endpoints(self, names: Optional[List[str]] = None, debug_mode: bool = False) -> List[Endpoint]:
        """
        Select the endpoints to run, keeping configured order.

        Args:
            names: Endpoint names to run; empty or None selects all
            debug_mode: Use `enabled_local` instead of `enabled`

        Returns:
            Endpoints that match the names and are enabled for the mode
        """
        return [
            endpoint for endpoint in self.endpoints
            if (not names or endpoint.name in names) and endpoint.is_active(debug_mode)
        ]
