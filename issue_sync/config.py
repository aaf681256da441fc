"""
Configuration management for GitHub → Notion sync.

Loads settings from environment variables and provides
structured configuration for all sync components.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_BATCH_SIZE = 50
MAX_BATCH_SIZE = 100


class SyncMode(Enum):
    """Where issues and pull requests are read from."""
    ASSIGNED = "assigned"
    OWNED = "owned"
    REPOSITORY = "repository"


class IdentityMode(Enum):
    """Which field links a GitHub item to its Notion page."""
    NUMBER = "number"
    URL = "url"


@dataclass
class PropertySchema:
    """Names of the Notion database properties the sync writes."""

    title: str = "Name"
    number: str = "ID"
    repository: str = "Repository"
    author: str = "Author"
    state: str = "State"
    url: str = "URL"
    date: str = "Date"


@dataclass
class Config:
    """
    Central configuration for the sync system.

    Loads from environment variables and provides defaults.
    All secrets are loaded from env vars - never hardcoded.
    """

    # Credentials
    notion_token: str
    github_token: str

    # Notion databases (at least one is required)
    issues_database_id: Optional[str] = None
    pull_requests_database_id: Optional[str] = None

    # Source selection
    mode: SyncMode = SyncMode.ASSIGNED
    repository: Optional[str] = None
    identity_mode: Optional[IdentityMode] = None

    # Write behavior
    batch_size: int = DEFAULT_BATCH_SIZE
    notion_rate_limit: int = 3
    github_api_url: str = "https://api.github.com"
    request_timeout: int = 30

    # Sync behavior
    debug: bool = False
    dry_run: bool = False

    schema: PropertySchema = field(default_factory=PropertySchema)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Config":
        """
        Load configuration from environment variables.

        Args:
            env_file: Optional path to .env file. If not provided,
                     looks for .env in current directory.

        Returns:
            Configured Config instance.

        Raises:
            ValueError: If required environment variables are missing
                        or malformed.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        notion_token = os.getenv("NOTION_TOKEN") or os.getenv("NOTION_KEY")
        if not notion_token:
            raise ValueError(
                "NOTION_TOKEN environment variable is required.\n"
                "Create a Notion integration at https://www.notion.so/my-integrations"
            )

        github_token = os.getenv("GITHUB_TOKEN") or os.getenv("GITHUB_KEY")
        if not github_token:
            raise ValueError(
                "GITHUB_TOKEN environment variable is required.\n"
                "Create a token at https://github.com/settings/tokens"
            )

        issues_db = _clean_id(os.getenv("NOTION_DATABASE_ID_ISSUES"))
        prs_db = _clean_id(os.getenv("NOTION_DATABASE_ID_PR"))

        mode = _parse_enum(SyncMode, os.getenv("SYNC_MODE"), "SYNC_MODE")
        identity_mode = _parse_enum(IdentityMode, os.getenv("IDENTITY_MODE"), "IDENTITY_MODE")

        batch_size = _parse_int(os.getenv("BATCH_SIZE"), "BATCH_SIZE", DEFAULT_BATCH_SIZE)
        notion_rate_limit = _parse_int(os.getenv("NOTION_RATE_LIMIT"), "NOTION_RATE_LIMIT", 3)

        return cls(
            notion_token=notion_token,
            github_token=github_token,
            issues_database_id=issues_db,
            pull_requests_database_id=prs_db,
            mode=mode or SyncMode.ASSIGNED,
            repository=os.getenv("GITHUB_REPOSITORY") or None,
            identity_mode=identity_mode,
            batch_size=batch_size,
            notion_rate_limit=notion_rate_limit,
            github_api_url=os.getenv("GITHUB_API_URL", "https://api.github.com"),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            dry_run=os.getenv("DRY_RUN", "false").lower() == "true",
        )

    @property
    def resolved_identity_mode(self) -> IdentityMode:
        """
        Identity mode in effect.

        Issue numbers are only unique inside one repository, so numeric
        matching is the default for single-repository syncs and URLs
        are the default everywhere else.
        """
        if self.identity_mode is not None:
            return self.identity_mode
        if self.mode == SyncMode.REPOSITORY:
            return IdentityMode.NUMBER
        return IdentityMode.URL

    @property
    def repository_owner_and_name(self) -> tuple[str, str]:
        """Split GITHUB_REPOSITORY into (owner, name)."""
        owner, _, name = (self.repository or "").partition("/")
        return owner, name

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.issues_database_id and not self.pull_requests_database_id:
            raise ValueError(
                "NOTION_DATABASE_ID_ISSUES or NOTION_DATABASE_ID_PR is required.\n"
                "Share the database with your integration and copy its ID from the URL."
            )

        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ValueError(
                f"BATCH_SIZE must be between 1 and {MAX_BATCH_SIZE}, got {self.batch_size}."
            )

        if self.notion_rate_limit < 1:
            raise ValueError("NOTION_RATE_LIMIT must be at least 1 request per second.")

        if self.mode == SyncMode.REPOSITORY:
            owner, name = self.repository_owner_and_name
            if not owner or not name:
                raise ValueError(
                    "GITHUB_REPOSITORY must be set to 'owner/name' when SYNC_MODE=repository."
                )


def _clean_id(value: Optional[str]) -> Optional[str]:
    """Strip whitespace and dashes from a Notion ID."""
    if not value:
        return None
    return value.strip().replace("-", "") or None


def _parse_enum(enum_cls, value: Optional[str], name: str):
    if not value:
        return None
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"{name} must be one of: {choices} (got '{value}').") from None


def _parse_int(value: Optional[str], name: str, default: int) -> int:
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got '{value}').") from None
