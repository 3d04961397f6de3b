"""
Task definition models.

Models are immutable; every change produces a new value. Field names follow
Python conventions and are serialised with the camelCase names used by the
ECS API. Fields the models do not declare are kept as-is so that templates
round-trip without losing settings such as cpu, memory or port mappings.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Assigned by ECS on registration and rejected by RegisterTaskDefinition
CONTROL_PLANE_FIELDS = (
    "taskDefinitionArn",
    "revision",
    "status",
    "requiresAttributes",
    "compatibilities",
    "registeredAt",
    "registeredBy",
    "deregisteredAt",
)


class ECSModel(BaseModel):
    """
    Base model for ECS API objects.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    def to_api(self) -> dict[str, Any]:
        """
        Serialise to the shape expected by the ECS API.
        """

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class EnvironmentVariable(ECSModel):
    """
    A name/value pair passed to a container.
    """

    name: str
    value: str | None = None


class ContainerDefinition(ECSModel):
    """
    A single container within a task definition.
    """

    name: str
    image: str
    environment: tuple[EnvironmentVariable, ...] = ()


class TaskTemplate(ECSModel):
    """
    A task definition that can be submitted for registration.
    """

    family: str
    container_definitions: tuple[ContainerDefinition, ...]
    volumes: Any = None

    @property
    def container_names(self) -> list[str]:
        return [container.name for container in self.container_definitions]


class TemplateStatus(str, Enum):
    """
    Registration status assigned by ECS.
    """

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DELETE_IN_PROGRESS = "DELETE_IN_PROGRESS"


class RegisteredTemplate(TaskTemplate):
    """
    A task definition as returned by ECS after registration.

    Only ever built from ECS responses (or stored copies of them).
    """

    task_definition_arn: str
    revision: int = Field(ge=1)
    status: TemplateStatus = TemplateStatus.ACTIVE

    def to_template(self) -> TaskTemplate:
        """
        Strip the fields assigned by ECS so the definition can be registered again.

        Returns:
            TaskTemplate: The registrable part of this definition
        """

        data = self.model_dump(by_alias=True, exclude_none=True)
        for field in CONTROL_PLANE_FIELDS:
            data.pop(field, None)
        return TaskTemplate.model_validate(data)


def parse_template(data: dict[str, Any]) -> TaskTemplate:
    """
    Build the right template model for a task definition document.

    Documents carrying a taskDefinitionArn were produced by ECS and are
    parsed as registered templates.

    Args:
        data: Task definition in ECS API form

    Returns:
        TaskTemplate or RegisteredTemplate

    Raises:
        pydantic.ValidationError: If the document is not a task definition
    """

    if "taskDefinitionArn" in data:
        return RegisteredTemplate.model_validate(data)
    return TaskTemplate.model_validate(data)
