"""Configuration models for the fetch layer."""

from pathlib import Path
from typing import Annotated

import yaml
from pydantic import BaseModel, ConfigDict, Field

from resilient_fetch.fetch.models import RetryBudget


class FetchConfig(BaseModel):
    """Configuration for connections opened by the fetch layer.

    Every attempt builds its own connection from these settings; nothing is
    pooled between attempts.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        "resilient-fetch/0.1"
    )
    timeout_seconds: Annotated[float, Field(ge=1.0, le=300.0)] = 30.0
    follow_redirects: bool = Field(
        default=False,
        description="Follow redirects within a single attempt",
    )
    backoff: RetryBudget = Field(default_factory=RetryBudget)

    @classmethod
    def from_yaml(cls, path: Path) -> "FetchConfig":
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML file.

        Returns:
            Validated FetchConfig.

        Raises:
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the YAML cannot be parsed.
            pydantic.ValidationError: If the content is invalid.
        """
        content = path.read_text(encoding="utf-8")
        parsed: dict[str, object] = yaml.safe_load(content) or {}
        return cls.model_validate(parsed)
