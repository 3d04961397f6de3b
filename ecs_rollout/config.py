"""
Configuration for ecs-rollout, assembled from configuration layers.

Layers are applied in a fixed order, each one overriding the previous:
defaults, the config file, the process environment and finally explicit
command-line overrides. Every layer contributes only the keys `Config`
recognises.
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ecs_rollout.exceptions import ConfigurationError
from ecs_rollout.git import get_git_revision, short_revision

DEFAULT_CONFIG_FILE = "ecs-rollout.yml"

TASK_DEFINITION_SUFFIX = "_taskdefinition.json"
TAG_SUFFIX = "_tag"
REVISION_SUFFIX = "_revision"


class RolloutBaseSettings(BaseSettings):
    """
    Base settings for ecs-rollout.
    """

    model_config = SettingsConfigDict(
        extra="forbid",
        frozen=True,
    )


class LoggingSettings(RolloutBaseSettings):
    """
    Logging configuration.
    """

    model_config = SettingsConfigDict(
        env_prefix="ROLLOUT_",
        extra="ignore",
        frozen=True,
    )

    log_level: str = Field(default="INFO", description="Log level")
    log_file: str = Field(
        # pylint: disable=unnecessary-lambda
        default_factory=lambda: str(Path(tempfile.gettempdir()) / "ecs-rollout.log"),
        description="Log file (defaults to temp directory)",
    )
    log_format: str = Field(
        default="%(asctime)s - %(levelname)s - %(message)s",
        description="Log format",
    )


class Config(RolloutBaseSettings):
    """
    Rollout configuration.

    Environment variables use the upper-cased field name without a prefix
    (e.g. REGION, IMAGE_TAG).
    """

    region: str = Field(default="", description="AWS region (e.g., eu-west-1)")
    cluster: str = Field(default="", description="ECS cluster name")
    service: str = Field(default="", description="ECS service name")
    container: str = Field(
        default="", description="Name of the container to update in the task definition"
    )
    image: str = Field(default="", description="Image repository to build and push")
    image_tag: str = Field(default="", description="Image tag to deploy")
    bucket: str = Field(
        default="", description="S3 bucket holding task definition overrides and results"
    )
    key: str = Field(default="", description="S3 key prefix for stored objects")
    dockerfile: str = Field(default="Dockerfile", description="Dockerfile to build")
    task_definition_key: str = Field(
        default="",
        description="Explicit S3 key of the task definition override",
    )

    @property
    def has_store(self) -> bool:
        """
        Whether an S3 location for overrides and results is configured.
        """

        return bool(self.bucket and (self.key or self.task_definition_key))

    @property
    def template_key(self) -> str:
        """
        S3 key of the task definition override.
        """

        if self.task_definition_key:
            return self.task_definition_key
        return self.key + TASK_DEFINITION_SUFFIX

    @property
    def tag_key(self) -> str:
        """
        S3 key of the published image tag.
        """

        return self.key + TAG_SUFFIX

    @property
    def revision_key(self) -> str:
        """
        S3 key of the published task definition revision.
        """

        return self.key + REVISION_SUFFIX

    def missing(self, keys: list[str]) -> list[str]:
        """
        Get the environment-style names of the given keys whose value is empty.

        Args:
            keys: Field names to check

        Returns:
            Upper-cased names of every empty field, in the order given
        """

        return [key.upper() for key in keys if not getattr(self, key)]


def recognised_values(values: Mapping[str, Any]) -> dict[str, str]:
    """
    Keep only the keys `Config` knows about, matched case-insensitively.

    Args:
        values: Raw key/value pairs from a configuration layer

    Returns:
        Field name -> string value mapping
    """

    fields = Config.model_fields
    result = {}
    for name, value in values.items():
        field = str(name).lower()
        if field in fields and value is not None:
            result[field] = str(value)
    return result


def read_config_file(path: Path, required: bool = False) -> dict[str, str]:
    """
    Read the config file layer.

    The file is parsed as YAML, so JSON files are accepted as well.

    Args:
        path: Path to the config file
        required: Whether a missing file is an error

    Returns:
        Recognised values from the file

    Raises:
        ConfigurationError: If the file is required but missing, or cannot be parsed
    """

    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file {path} does not exist")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        raise ConfigurationError(f"Failed to read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Root of config file {path} must be a mapping")

    return recognised_values(data)


def read_environment() -> dict[str, str]:
    """
    Read the environment layer.

    Returns:
        Values explicitly provided through environment variables
    """

    env_config = Config()
    return env_config.model_dump(include=env_config.model_fields_set)


def default_image_tag(
    environ: Mapping[str, str] | None = None, cwd: Path | None = None
) -> str:
    """
    Derive an image tag from the commit being built.

    Uses SHA1 or CIRCLE_SHA1 from the environment, falling back to the git
    repository in the working directory. The SHA is shortened to 6
    characters and prefixed with the CI build number when BUILD_NUM or
    CIRCLE_BUILD_NUM is set (e.g. "874_672af8").

    Args:
        environ: Environment to read (defaults to os.environ)
        cwd: Repository directory for the git fallback

    Returns:
        The derived tag, or an empty string if no commit can be found
    """

    environ = os.environ if environ is None else environ

    sha = environ.get("SHA1") or environ.get("CIRCLE_SHA1") or get_git_revision(cwd)
    if not sha:
        return ""

    tag = short_revision(sha)
    build = environ.get("BUILD_NUM") or environ.get("CIRCLE_BUILD_NUM")
    if build:
        return f"{build}_{tag}"
    return tag


def load_config(
    config_file: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Config:
    """
    Build the configuration for one invocation.

    Args:
        config_file: Config file path. Defaults to DEFAULT_CONFIG_FILE in the
            current directory, which may be absent.
        overrides: Values taking precedence over every other layer

    Returns:
        Config: The immutable configuration

    Raises:
        ConfigurationError: If the config file cannot be used
    """

    path = Path(config_file) if config_file else Path.cwd() / DEFAULT_CONFIG_FILE

    layers = [
        read_config_file(path, required=config_file is not None),
        read_environment(),
        recognised_values(overrides or {}),
    ]

    values: dict[str, str] = {}
    for layer in layers:
        values.update(layer)

    if not values.get("image_tag"):
        values["image_tag"] = default_image_tag()

    return Config(**values)
