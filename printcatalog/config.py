"""Settings for catalog aggregation runs."""

import os
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

TOKEN_ENV_VAR = "PRINTIFY_API_TOKEN"


class RunMode(str, Enum):
    """How blueprints are scheduled."""

    BATCH = "batch"
    SEQUENTIAL = "sequential"


class Settings(BaseModel):
    """Configuration for an aggregation run."""

    base_url: str = Field(default="https://api.printify.com/v1", description="API root URL")
    api_token: str | None = Field(default=None, description="Bearer token")
    api_version: str = Field(default="v1", description="Value of the X-PF-API-VERSION header")
    timeout_seconds: float = Field(default=30.0, description="HTTP timeout")
    mode: RunMode = Field(default=RunMode.BATCH)
    batch_size: int = Field(default=9, ge=1, description="Blueprints per batch (max 9 req/s)")
    request_interval: float = Field(
        default=0.0, ge=0.0, description="Minimum seconds between request starts"
    )
    max_concurrent_requests: int = Field(
        default=9, ge=1, description="Maximum requests in flight at once"
    )
    sequential_interval: float = Field(
        default=0.111, ge=0.0, description="Request interval used in sequential mode"
    )
    include_blueprint_variants: bool = Field(
        default=False, description="Also fetch catalog-level variants per blueprint"
    )
    load_provider_directory: bool = Field(
        default=False, description="Load and enrich the global provider list before the run"
    )
    tick_interval: float = Field(default=1.0, gt=0.0, description="Stopwatch resolution")

    @property
    def effective_interval(self) -> float:
        """Request interval for the configured mode."""
        if self.mode == RunMode.SEQUENTIAL:
            return max(self.request_interval, self.sequential_interval)
        return self.request_interval

    def save(self, filepath: Path | str) -> None:
        """Save settings to a YAML file (token excluded)."""
        filepath = Path(filepath)
        data = self.model_dump(mode="json", exclude={"api_token"})
        filepath.write_text(
            yaml.dump(data, allow_unicode=True, default_flow_style=False, sort_keys=False),
            encoding="utf-8",
        )

    @classmethod
    def load(cls, filepath: Path | str | None = None) -> "Settings":
        """Load settings from YAML, then apply the token environment variable."""
        data: dict = {}
        if filepath is not None:
            filepath = Path(filepath)
            if filepath.exists():
                data = yaml.safe_load(filepath.read_text(encoding="utf-8")) or {}

        token = os.environ.get(TOKEN_ENV_VAR)
        if token:
            data["api_token"] = token
        return cls.model_validate(data)
