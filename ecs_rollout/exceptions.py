"""
Custom exceptions for ecs-rollout.
"""


class RolloutException(Exception):
    """Base exception for all rollout errors."""

    # Set by the rollout driver to the step that raised the error
    step = None


class ConfigurationError(RolloutException):
    """Raised when configuration is invalid or missing."""


class MissingConfigurationError(ConfigurationError):
    """Raised when one or more required configuration values are empty."""

    def __init__(self, missing_keys: list[str]):
        self.missing_keys = list(missing_keys)
        super().__init__(
            "All configuration values are required. Missing values: "
            + ", ".join(self.missing_keys)
        )


class TemplateNotFoundError(RolloutException):
    """Raised when a required task definition template cannot be found."""


class ImageTagNotFoundError(RolloutException):
    """Raised when a required image tag cannot be found."""


class ContainerNotFoundError(RolloutException):
    """Raised when the target container is missing from a task definition."""


class InvalidImageReferenceError(RolloutException, ValueError):
    """Raised when an image reference cannot be parsed."""


class MalformedObjectError(RolloutException):
    """Raised when a stored object exists but cannot be used."""


class RemoteCallError(RolloutException):
    """Raised when an AWS API call fails."""

    def __init__(self, message: str, operation: str = "", resource: str = ""):
        self.operation = operation
        self.resource = resource
        super().__init__(message)


class ServiceUpdateError(RemoteCallError):
    """Raised when a new revision was registered but the service was not updated."""

    def __init__(self, message: str, registered_template, **kwargs):
        self.registered_template = registered_template
        super().__init__(message, **kwargs)


class BuildError(RolloutException):
    """Raised when a docker invocation fails."""


class CommandNotFoundError(RolloutException):
    """Raised when a required command is not found."""
