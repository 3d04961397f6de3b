"""
Resolution of the task definition and image tag a rollout starts from.

A task definition stored in S3 (typically written by Terraform) overrides
the one the service currently runs. Without one, the live task definition
is described through ECS.
"""

from pydantic import ValidationError

from ecs_rollout.config import Config
from ecs_rollout.ecs import ClusterClient
from ecs_rollout.exceptions import MalformedObjectError
from ecs_rollout.models import RegisteredTemplate, TaskTemplate, parse_template
from ecs_rollout.storage import AbsentObject, JsonObject, ObjectStore, s3_url
from ecs_rollout.utils import get_logger

logger = get_logger(__name__)


def fetch_live_template(config: Config, cluster: ClusterClient) -> RegisteredTemplate:
    """
    Get the task definition the service currently runs.

    Args:
        config: Rollout configuration (cluster and service are used)
        cluster: ECS client

    Returns:
        RegisteredTemplate: The live task definition

    Raises:
        RemoteCallError: If ECS cannot be queried
        TemplateNotFoundError: If the service does not exist
    """

    template_arn = cluster.describe_service_template_arn(config.cluster, config.service)
    logger.debug("Service '%s' runs %s", config.service, template_arn)
    return cluster.describe_template(template_arn)


def fetch_override_template(config: Config, store: ObjectStore) -> TaskTemplate | None:
    """
    Get the task definition stored in S3, if any.

    Args:
        config: Rollout configuration
        store: S3 client

    Returns:
        The stored task definition, or None when no S3 location is configured
        or nothing is stored there

    Raises:
        MalformedObjectError: If the stored object is not a JSON task definition
        RemoteCallError: If S3 cannot be read
    """

    if not config.has_store:
        return None

    key = config.template_key
    url = s3_url(config.bucket, key)
    stored = store.get(config.bucket, key)

    if isinstance(stored, AbsentObject):
        logger.info("No task definition override at %s", url)
        return None

    if not isinstance(stored, JsonObject):
        raise MalformedObjectError(f"{url} does not have a JSON content type")

    if not isinstance(stored.value, dict):
        raise MalformedObjectError(f"{url} is not a JSON object")

    try:
        return parse_template(stored.value)
    except ValidationError as e:
        raise MalformedObjectError(f"{url} is not a valid task definition: {e}") from e


def resolve_template(
    config: Config, cluster: ClusterClient, store: ObjectStore
) -> TaskTemplate:
    """
    Get the task definition a deployment starts from.

    Args:
        config: Rollout configuration
        cluster: ECS client
        store: S3 client

    Returns:
        The S3 override when one exists, otherwise the live task definition

    Raises:
        MalformedObjectError: If the S3 override exists but is corrupt
        RemoteCallError: If ECS or S3 cannot be queried
    """

    template = fetch_override_template(config, store)
    if template is not None:
        logger.info(
            "Using task definition from %s", s3_url(config.bucket, config.template_key)
        )
        return template

    logger.info("Using task definition of service '%s'", config.service)
    return fetch_live_template(config, cluster)


def resolve_image_tag(config: Config, store: ObjectStore) -> str | None:
    """
    Get the image tag stored in S3, if any.

    Args:
        config: Rollout configuration
        store: S3 client

    Returns:
        The stored tag, or None when no S3 location is configured or no
        (or an empty) tag is stored

    Raises:
        MalformedObjectError: If the stored object is not plain text
        RemoteCallError: If S3 cannot be read
    """

    if not (config.bucket and config.key):
        return None

    url = s3_url(config.bucket, config.tag_key)
    stored = store.get(config.bucket, config.tag_key)

    if isinstance(stored, AbsentObject):
        return None

    if isinstance(stored, JsonObject):
        raise MalformedObjectError(f"{url} is JSON, expected a plain text tag")

    return stored.text.strip() or None
