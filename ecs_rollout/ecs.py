"""
ECS control plane access.
"""

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from ecs_rollout.exceptions import (
    MalformedObjectError,
    RemoteCallError,
    TemplateNotFoundError,
)
from ecs_rollout.models import RegisteredTemplate, TaskTemplate
from ecs_rollout.utils import get_logger


class ClusterClient:
    """
    ECS client with encapsulated API access.

    One client is created per invocation and passed to whatever needs it.
    """

    def __init__(self, region: str | None = None, client=None):
        """
        Initialize the ECS client.

        Args:
            region: AWS region
            client: Pre-built boto3 ECS client to use instead of creating one
        """

        self._ecs = client or boto3.client("ecs", region_name=region or None)
        self._logger = get_logger(__name__)

    def _call(self, operation: str, resource: str, **kwargs) -> dict:
        """
        Call an ECS API operation.

        Args:
            operation: boto3 method name (e.g. "describe_services")
            resource: Human readable name of the resource the call targets
            **kwargs: Parameters for the call

        Returns:
            The API response

        Raises:
            RemoteCallError: If the call fails
        """

        self._logger.debug("ECS %s for %s", operation, resource)

        try:
            return getattr(self._ecs, operation)(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise RemoteCallError(
                f"ECS {operation} failed for {resource}: {e}",
                operation=operation,
                resource=resource,
            ) from e

    def describe_service_template_arn(self, cluster: str, service: str) -> str:
        """
        Get the ARN of the task definition a service currently runs.

        Args:
            cluster: Cluster name
            service: Service name

        Returns:
            Task definition ARN

        Raises:
            RemoteCallError: If the service cannot be described
            TemplateNotFoundError: If the service does not exist
        """

        resource = f"service '{service}' in cluster '{cluster}'"
        response = self._call(
            "describe_services", resource, cluster=cluster, services=[service]
        )

        services = response.get("services") or []
        if not services:
            failures = ", ".join(
                f"{f.get('arn', '')} ({f.get('reason', 'unknown')})"
                for f in response.get("failures", [])
            )
            raise TemplateNotFoundError(
                f"Could not find {resource}" + (f": {failures}" if failures else "")
            )

        return services[0]["taskDefinition"]

    def describe_template(self, template_ref: str) -> RegisteredTemplate:
        """
        Get a registered task definition.

        Args:
            template_ref: Task definition ARN or family:revision

        Returns:
            RegisteredTemplate: The task definition

        Raises:
            RemoteCallError: If the task definition cannot be described
            MalformedObjectError: If the response is not a task definition
        """

        response = self._call(
            "describe_task_definition",
            f"task definition '{template_ref}'",
            taskDefinition=template_ref,
        )
        return self._parse_registered(response, template_ref)

    def register_template(self, template: TaskTemplate) -> RegisteredTemplate:
        """
        Register a task definition as a new revision of its family.

        Args:
            template: Task definition without ECS-assigned fields

        Returns:
            RegisteredTemplate: The new revision

        Raises:
            TypeError: If given a registered template
            RemoteCallError: If registration fails
        """

        if isinstance(template, RegisteredTemplate):
            raise TypeError(
                f"Task definition {template.task_definition_arn} is already registered; "
                "strip ECS-assigned fields before registering it again"
            )

        self._logger.info("Registering new revision of task definition '%s'", template.family)
        response = self._call(
            "register_task_definition",
            f"task definition family '{template.family}'",
            **template.to_api(),
        )
        registered = self._parse_registered(response, template.family)
        self._logger.info("Registered %s", registered.task_definition_arn)
        return registered

    def update_service(self, cluster: str, service: str, template_arn: str) -> dict:
        """
        Point a service at a task definition.

        Args:
            cluster: Cluster name
            service: Service name
            template_arn: Task definition ARN

        Returns:
            The updated service description

        Raises:
            RemoteCallError: If the update fails
        """

        self._logger.info("Updating service '%s' to %s", service, template_arn)
        response = self._call(
            "update_service",
            f"service '{service}' in cluster '{cluster}'",
            cluster=cluster,
            service=service,
            taskDefinition=template_arn,
        )
        return response.get("service", {})

    @staticmethod
    def _parse_registered(response: dict, template_ref: str) -> RegisteredTemplate:
        try:
            return RegisteredTemplate.model_validate(response["taskDefinition"])
        except (KeyError, ValidationError) as e:
            raise MalformedObjectError(
                f"Unexpected ECS response for task definition '{template_ref}': {e}"
            ) from e
