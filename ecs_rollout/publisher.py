"""
Publishing rollout results to S3.

Downstream tooling (e.g. Terraform) reads the deployed revision and image
tag from `{key}_revision` and `{key}_tag`. Writes overwrite, so publishing
the same result twice is harmless.
"""

from ecs_rollout.config import Config
from ecs_rollout.exceptions import MissingConfigurationError
from ecs_rollout.image import get_tag
from ecs_rollout.models import ContainerDefinition, RegisteredTemplate
from ecs_rollout.storage import ObjectStore, s3_url
from ecs_rollout.utils import get_logger

logger = get_logger(__name__)


def _require_location(config: Config) -> None:
    missing = config.missing(["bucket", "key"])
    if missing:
        raise MissingConfigurationError(missing)


def sync_revision(
    config: Config, store: ObjectStore, template: RegisteredTemplate
) -> str:
    """
    Write the revision of a registered task definition.

    Args:
        config: Rollout configuration
        store: S3 client
        template: Registered task definition

    Returns:
        The written value

    Raises:
        MissingConfigurationError: If bucket or key is not set
        RemoteCallError: If the write fails
    """

    _require_location(config)

    revision = str(template.revision)
    store.put_text(config.bucket, config.revision_key, revision)
    logger.info("%s => %s", s3_url(config.bucket, config.revision_key), revision)
    return revision


def sync_image_tag(
    config: Config, store: ObjectStore, container: ContainerDefinition
) -> str:
    """
    Write the image tag a container runs.

    Args:
        config: Rollout configuration
        store: S3 client
        container: Deployed container

    Returns:
        The written value

    Raises:
        MissingConfigurationError: If bucket or key is not set
        InvalidImageReferenceError: If the container image cannot be parsed
        RemoteCallError: If the write fails
    """

    _require_location(config)

    tag = get_tag(container.image)
    store.put_text(config.bucket, config.tag_key, tag)
    logger.info("%s => %s", s3_url(config.bucket, config.tag_key), tag)
    return tag


def publish(
    config: Config,
    store: ObjectStore,
    template: RegisteredTemplate,
    container: ContainerDefinition | None = None,
    required: bool = False,
) -> bool:
    """
    Publish the outcome of a rollout.

    Args:
        config: Rollout configuration
        store: S3 client
        template: The registered task definition now in use
        container: The updated container. Its tag is only published when given.
        required: Whether a missing S3 location is an error

    Returns:
        Whether anything was published

    Raises:
        MissingConfigurationError: If required and bucket or key is not set
        RemoteCallError: If a write fails
    """

    if not (config.bucket and config.key):
        if required:
            _require_location(config)
        logger.debug("No S3 location configured, not publishing results")
        return False

    sync_revision(config, store, template)
    if container is not None:
        sync_image_tag(config, store, container)
    return True
