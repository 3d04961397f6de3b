"""
Rolling out new task definition revisions to ECS services.

Every mode runs the same sequence of steps: validate the configuration,
fetch the current task definition, optionally point the target container
at a new image, register the result as a new revision, update the service
to use it and publish the outcome to S3. A failing step aborts the rollout;
nothing is retried.

If the service update fails after registration, the new revision exists but
is not live. Running the rollout again registers another revision and
updates the service, so it is safe to retry.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from ecs_rollout.config import Config
from ecs_rollout.ecs import ClusterClient
from ecs_rollout.exceptions import (
    ImageTagNotFoundError,
    InvalidImageReferenceError,
    MissingConfigurationError,
    RemoteCallError,
    RolloutException,
    ServiceUpdateError,
    TemplateNotFoundError,
)
from ecs_rollout.image import get_tag
from ecs_rollout.models import ContainerDefinition, RegisteredTemplate, TaskTemplate
from ecs_rollout.publisher import publish
from ecs_rollout.resolver import (
    fetch_live_template,
    fetch_override_template,
    resolve_image_tag,
    resolve_template,
)
from ecs_rollout.storage import ObjectStore, s3_url
from ecs_rollout.templates import (
    as_template,
    locate_container,
    next_template,
    update_container_image,
)
from ecs_rollout.utils import get_logger

logger = get_logger(__name__)


class RolloutMode(str, Enum):
    """
    The ways a service can be rolled out.
    """

    DEPLOY = "deploy"
    TERRAFORM_RESTART = "restart-from-template"
    RESTART = "restart-service"
    REREGISTER = "task-definition"


class RolloutStep(str, Enum):
    """
    Steps of a rollout, in execution order.
    """

    VALIDATE = "validate"
    FETCH = "fetch"
    MUTATE = "mutate"
    REGISTER = "register"
    REPOINT = "repoint"
    PUBLISH = "publish"


REQUIRED_KEYS = {
    RolloutMode.DEPLOY: ["region", "cluster", "service", "container", "image_tag"],
    RolloutMode.TERRAFORM_RESTART: [
        "region",
        "cluster",
        "service",
        "container",
        "bucket",
        "key",
    ],
    RolloutMode.RESTART: ["region", "cluster", "service"],
    RolloutMode.REREGISTER: ["region", "cluster", "service"],
}


@dataclass(frozen=True)
class RolloutResult:
    """
    Outcome of a successful rollout.
    """

    mode: RolloutMode
    template: RegisteredTemplate
    previous: TaskTemplate
    container: ContainerDefinition | None = None
    published: bool = False

    @property
    def image(self) -> str | None:
        return self.container.image if self.container else None


def require_config(config: Config, mode: RolloutMode) -> None:
    """
    Check that every value a mode needs is set.

    Args:
        config: Rollout configuration
        mode: Rollout mode

    Raises:
        MissingConfigurationError: Listing every missing value
    """

    missing = config.missing(REQUIRED_KEYS[mode])
    if missing:
        raise MissingConfigurationError(missing)


class RolloutDriver:
    """
    Runs rollouts against one service.
    """

    def __init__(self, config: Config, cluster: ClusterClient, store: ObjectStore):
        """
        Initialize the driver.

        Args:
            config: Rollout configuration
            cluster: ECS client
            store: S3 client
        """

        self._config = config
        self._cluster = cluster
        self._store = store

    @contextmanager
    def _step(self, step: RolloutStep) -> Iterator[None]:
        logger.debug("Rollout step: %s", step.value)
        try:
            yield
        except RolloutException as e:
            if e.step is None:
                e.step = step
            raise

    def _mutate(
        self,
        current: TaskTemplate,
        tag: str | None,
        repository: str | None = None,
    ) -> tuple[TaskTemplate, ContainerDefinition]:
        template = as_template(current)
        container = locate_container(self._config.container, template)
        updated = update_container_image(container, tag=tag, repository=repository)
        logger.info("Container '%s' image: %s", updated.name, updated.image)
        return next_template(template, updated), updated

    def _register(self, template: TaskTemplate) -> RegisteredTemplate:
        with self._step(RolloutStep.REGISTER):
            return self._cluster.register_template(template)

    def _repoint(self, registered: RegisteredTemplate) -> None:
        with self._step(RolloutStep.REPOINT):
            try:
                self._cluster.update_service(
                    self._config.cluster,
                    self._config.service,
                    registered.task_definition_arn,
                )
            except RemoteCallError as e:
                raise ServiceUpdateError(
                    f"Registered {registered.task_definition_arn} but service "
                    f"'{self._config.service}' was not updated: {e}. "
                    "The new revision is not live; re-running the rollout is safe.",
                    registered_template=registered,
                    operation=e.operation,
                    resource=e.resource,
                ) from e

    @staticmethod
    def _tagged(container: ContainerDefinition | None) -> ContainerDefinition | None:
        if container is None:
            return None
        try:
            get_tag(container.image)
        except InvalidImageReferenceError as e:
            logger.warning("Not publishing the image tag of '%s': %s", container.name, e)
            return None
        return container

    def _publish(
        self,
        registered: RegisteredTemplate,
        container: ContainerDefinition | None,
        required: bool = False,
    ) -> bool:
        with self._step(RolloutStep.PUBLISH):
            return publish(
                self._config, self._store, registered, container, required=required
            )

    def deploy(self, repository: str | None = None) -> RolloutResult:
        """
        Deploy the configured image tag.

        The task definition comes from the S3 override when there is one,
        otherwise from the service.

        Args:
            repository: Image repository replacing the container's current
                one (e.g. the repository an image was just pushed to)

        Returns:
            RolloutResult: The new revision and updated container

        Raises:
            RolloutException: If any step fails
        """

        config = self._config
        with self._step(RolloutStep.VALIDATE):
            require_config(config, RolloutMode.DEPLOY)

        with self._step(RolloutStep.FETCH):
            current = resolve_template(config, self._cluster, self._store)

        with self._step(RolloutStep.MUTATE):
            template, container = self._mutate(current, config.image_tag, repository)

        registered = self._register(template)
        self._repoint(registered)
        published = self._publish(registered, container)

        return RolloutResult(
            mode=RolloutMode.DEPLOY,
            template=registered,
            previous=current,
            container=container,
            published=published,
        )

    def restart_from_template(self) -> RolloutResult:
        """
        Redeploy the task definition and image tag stored in S3.

        Used when the task definition is managed outside this tool (e.g. by
        Terraform). The live task definition is never used as a fallback.

        Returns:
            RolloutResult: The new revision and updated container

        Raises:
            TemplateNotFoundError: If no task definition is stored
            ImageTagNotFoundError: If no image tag is stored
            RolloutException: If any other step fails
        """

        config = self._config
        with self._step(RolloutStep.VALIDATE):
            require_config(config, RolloutMode.TERRAFORM_RESTART)

        with self._step(RolloutStep.FETCH):
            current = fetch_override_template(config, self._store)
            if current is None:
                raise TemplateNotFoundError(
                    "Couldn't find task definition at "
                    f"{s3_url(config.bucket, config.template_key)}"
                )

            tag = resolve_image_tag(config, self._store)
            if tag is None:
                raise ImageTagNotFoundError(
                    f"Couldn't find image tag at {s3_url(config.bucket, config.tag_key)}"
                )

        with self._step(RolloutStep.MUTATE):
            template, container = self._mutate(current, tag)

        registered = self._register(template)
        self._repoint(registered)
        published = self._publish(registered, container, required=True)

        return RolloutResult(
            mode=RolloutMode.TERRAFORM_RESTART,
            template=registered,
            previous=current,
            container=container,
            published=published,
        )

    def restart(self) -> RolloutResult:
        """
        Restart the service by registering its current task definition again.

        The new revision has the same content, which makes ECS replace the
        running tasks (and pull their images again).

        When a container is configured its image tag is published along with
        the revision, unless the image reference cannot be parsed.

        Returns:
            RolloutResult: The new revision; `previous` is the replaced one

        Raises:
            ContainerNotFoundError: If the configured container is not in the
                live task definition. Nothing is registered in that case.
            RolloutException: If any step fails
        """

        config = self._config
        with self._step(RolloutStep.VALIDATE):
            require_config(config, RolloutMode.RESTART)

        container = None
        with self._step(RolloutStep.FETCH):
            current = fetch_live_template(config, self._cluster)
            if config.container:
                container = locate_container(config.container, current)

        registered = self._register(current.to_template())
        self._repoint(registered)
        published = self._publish(registered, self._tagged(container))

        return RolloutResult(
            mode=RolloutMode.RESTART,
            template=registered,
            previous=current,
            container=container,
            published=published,
        )

    def reregister(self) -> RolloutResult:
        """
        Register the current task definition as a new revision without
        updating the service.

        The task definition comes from the S3 override when there is one,
        otherwise from the service.

        Returns:
            RolloutResult: The new revision

        Raises:
            RolloutException: If any step fails
        """

        config = self._config
        with self._step(RolloutStep.VALIDATE):
            require_config(config, RolloutMode.REREGISTER)

        with self._step(RolloutStep.FETCH):
            current = resolve_template(config, self._cluster, self._store)

        registered = self._register(as_template(current))
        published = self._publish(registered, None)

        return RolloutResult(
            mode=RolloutMode.REREGISTER,
            template=registered,
            previous=current,
            published=published,
        )

    def run(self, mode: RolloutMode) -> RolloutResult:
        """
        Run a rollout in the given mode.
        """

        runners = {
            RolloutMode.DEPLOY: self.deploy,
            RolloutMode.TERRAFORM_RESTART: self.restart_from_template,
            RolloutMode.RESTART: self.restart,
            RolloutMode.REREGISTER: self.reregister,
        }
        return runners[mode]()
