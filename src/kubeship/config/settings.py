"""Deployment settings loaded from kubeship.yaml.

The file has a single top-level `config:` key:

    config:
      release: excalidraw
      namespace: excalidraw
      image: ${EXCALIDRAW_IMAGE:-excalidraw/excalidraw:latest}
      timeout_seconds: 300
      chart_path: k8s/helm/excalidraw

Placeholders are resolved from the environment (and a `.env` file next to the
config) before the YAML is parsed.
"""

from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from kubeship.config.config_utils import substitute_env_vars
from kubeship.infra.constants import DEFAULT_CONSTANTS

Backend = Literal["kubectl", "kr8s"]


class DeploySettings(BaseModel):
    """Validated deployment settings."""

    model_config = ConfigDict(extra="forbid")

    release: str = Field(
        default=DEFAULT_CONSTANTS.DEFAULT_RELEASE_NAME,
        description="Release name, used for naming and the access hint",
    )
    namespace: str = Field(
        default=DEFAULT_CONSTANTS.DEFAULT_NAMESPACE,
        description="Target namespace",
    )
    image: str | None = Field(
        default=None,
        description="Image reference set on every workload container",
    )
    timeout_seconds: float = Field(
        default=DEFAULT_CONSTANTS.ROLLOUT_TIMEOUT_SECONDS,
        gt=0,
        description="Rollout readiness timeout",
    )
    poll_interval_seconds: float = Field(
        default=DEFAULT_CONSTANTS.POLL_INTERVAL_SECONDS,
        gt=0,
        description="Seconds between rollout polls",
    )
    manifests_dir: Path | None = Field(
        default=None,
        description="Directory of plain manifests; when set the chart is not used",
    )
    chart_path: Path = Field(
        default=Path(DEFAULT_CONSTANTS.DEFAULT_CHART_PATH),
        description="Helm chart rendered into manifests",
    )
    values_files: list[Path] = Field(
        default_factory=list,
        description="Values files passed to the chart renderer; the chart's own values.yaml when empty",
    )
    backend: Backend = Field(
        default="kubectl",
        description="Cluster controller backend",
    )

    @field_validator("release", "namespace")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        # RFC 1123 label, what Kubernetes accepts for namespace names
        if not value or len(value) > 63:
            raise ValueError("must be 1-63 characters")
        if not all(c.isalnum() or c == "-" for c in value) or value != value.lower():
            raise ValueError("must contain only lowercase letters, digits and '-'")
        if value[0] == "-" or value[-1] == "-":
            raise ValueError("must start and end with a letter or digit")
        return value

    @property
    def uses_chart(self) -> bool:
        return self.manifests_dir is None

    @property
    def chart_values_files(self) -> list[Path]:
        return self.values_files or [self.chart_path / "values.yaml"]

    def with_overrides(self, **overrides: Any) -> "DeploySettings":
        """Return a copy with every non-None override applied and re-validated.

        The two descriptor sources exclude each other: overriding the chart
        drops a configured manifest directory, and overriding both is an error.

        Raises:
            ValueError: If both sources are overridden or validation fails
        """
        given = {k: v for k, v in overrides.items() if v is not None}
        if "manifests_dir" in given and "chart_path" in given:
            raise ValueError("--manifests and --chart cannot be used together")

        values = self.model_dump()
        values.update(given)
        if "chart_path" in given:
            values["manifests_dir"] = None
            if "values_files" not in given:
                values["values_files"] = []
        try:
            return DeploySettings(**values)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e}") from e


def load_settings(file_path: Path | None = None) -> DeploySettings:
    """
    Load deployment settings from a YAML file.

    Args:
        file_path: Config file (default: kubeship.yaml in the working directory)

    Returns:
        DeploySettings; defaults when the default file does not exist

    Raises:
        ValueError: If a required environment variable is missing, the YAML is
                    invalid, the 'config' key is missing, or validation fails
        FileNotFoundError: If an explicitly given file does not exist
    """
    explicit = file_path is not None
    path = file_path or Path(DEFAULT_CONSTANTS.DEFAULT_CONFIG_FILE)

    if not path.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {path}")
        logger.debug(f"No {path} found, using default settings")
        return DeploySettings()

    load_dotenv(path.parent / ".env", override=False)
    content = substitute_env_vars(path.read_text(encoding="utf-8"))

    try:
        loaded: dict[str, Any] | None = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML: {e}") from e

    if not isinstance(loaded, dict) or "config" not in loaded:
        raise ValueError("Invalid YAML structure: missing 'config' key")

    try:
        settings = DeploySettings(**(loaded["config"] or {}))
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    logger.info(f"Loaded settings from {path}")
    return settings
