"""
Locating and replacing containers within task definitions.
"""

from ecs_rollout.exceptions import ContainerNotFoundError
from ecs_rollout.image import update_repository, update_tag
from ecs_rollout.models import ContainerDefinition, RegisteredTemplate, TaskTemplate
from ecs_rollout.utils import get_logger

logger = get_logger(__name__)


def as_template(template: TaskTemplate) -> TaskTemplate:
    """
    Get the registrable form of a template, stripping ECS-assigned fields.
    """

    if isinstance(template, RegisteredTemplate):
        return template.to_template()
    return template


def _container_indexes(name: str, template: TaskTemplate) -> list[int]:
    indexes = [
        i for i, c in enumerate(template.container_definitions) if c.name == name
    ]
    if not indexes:
        raise ContainerNotFoundError(
            f"Task definition '{template.family}' has no container named '{name}' "
            f"(containers: {', '.join(template.container_names) or 'none'})"
        )
    return indexes


def locate_container(name: str, template: TaskTemplate) -> ContainerDefinition:
    """
    Find the container with the given name in a task definition.

    When several containers share the name the first one is used and a
    warning is logged.

    Args:
        name: Container name
        template: Task definition to search

    Returns:
        ContainerDefinition: The matching container

    Raises:
        ContainerNotFoundError: If no container has that name
    """

    matches = _container_indexes(name, template)

    if len(matches) > 1:
        logger.warning(
            "Task definition '%s' has %d containers named '%s', using the first one",
            template.family,
            len(matches),
            name,
        )

    return template.container_definitions[matches[0]]


def update_container_image(
    container: ContainerDefinition,
    tag: str | None = None,
    repository: str | None = None,
) -> ContainerDefinition:
    """
    Point a container at a new image.

    Args:
        container: Container to update
        tag: New image tag. The current tag is kept when not given.
        repository: New image repository. The current one is kept when not given.

    Returns:
        ContainerDefinition: A new container definition

    Raises:
        InvalidImageReferenceError: If the current or resulting image is invalid
    """

    image = container.image
    if repository:
        image = update_repository(image, repository)
    if tag:
        image = update_tag(image, tag)

    if image == container.image:
        return container

    logger.debug(
        "Updating container '%s' image from %s to %s", container.name, container.image, image
    )
    return container.model_copy(update={"image": image})


def next_template(
    template: TaskTemplate, container: ContainerDefinition
) -> TaskTemplate:
    """
    Build the next task definition with one container replaced.

    Only the first container with the replacement's name is replaced. Every
    other container is carried over untouched, as are all other task
    definition fields.

    Args:
        template: Current task definition
        container: Replacement container, matched by name

    Returns:
        TaskTemplate: The new task definition

    Raises:
        ContainerNotFoundError: If the template has no container with that name
    """

    index = _container_indexes(container.name, template)[0]

    containers = list(template.container_definitions)
    containers[index] = container
    return template.model_copy(update={"container_definitions": tuple(containers)})
