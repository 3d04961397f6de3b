"""
Build, tag and push a Docker image, then roll it out to an ECS service.
"""

import argparse

from ecs_rollout.cli.utils import (
    describe_error,
    exit_with_error,
    run_command_with_logging,
)
from ecs_rollout.config import Config, load_config
from ecs_rollout.docker import build_image, docker_login, push_image
from ecs_rollout.ecs import ClusterClient
from ecs_rollout.exceptions import (
    ConfigurationError,
    MissingConfigurationError,
    RolloutException,
)
from ecs_rollout.image import prepend_registry
from ecs_rollout.registry import RegistryClient, RegistryCredentials
from ecs_rollout.rollout import (
    REQUIRED_KEYS,
    RolloutDriver,
    RolloutMode,
    RolloutResult,
    require_config,
)
from ecs_rollout.storage import ObjectStore
from ecs_rollout.utils import get_logger, log_success

logger = get_logger(__name__)

SUB_COMMAND_MODES = {
    "restart-service": RolloutMode.RESTART,
    "restart-from-template": RolloutMode.TERRAFORM_RESTART,
    "task-definition": RolloutMode.REREGISTER,
}
SUB_COMMANDS = ["login", "build", *SUB_COMMAND_MODES]

BUILD_KEYS = ["region", "image", "image_tag", "dockerfile"]


def _require(config: Config, keys: list[str]) -> None:
    missing = config.missing(list(dict.fromkeys(keys)))
    if missing:
        raise MissingConfigurationError(missing)


def _driver(config: Config) -> RolloutDriver:
    return RolloutDriver(
        config, ClusterClient(config.region), ObjectStore(config.region)
    )


def login(config: Config) -> RegistryCredentials:
    """
    Log docker in to the account's ECR registry.

    Args:
        config: Rollout configuration (region is used)

    Returns:
        RegistryCredentials: The credentials used

    Raises:
        MissingConfigurationError: If the region is not set
        RemoteCallError: If the ECR token cannot be fetched
        BuildError: If docker login fails
    """

    _require(config, ["region"])
    credentials = RegistryClient(config.region).get_credentials()
    docker_login(credentials)
    return credentials


def build(config: Config, registry_login: bool = True) -> str:
    """
    Build and tag the image, logging in to ECR first unless disabled.

    Bare image names are prefixed with the ECR registry host after login.

    Args:
        config: Rollout configuration
        registry_login: Whether to log in to ECR

    Returns:
        The image repository that was built

    Raises:
        MissingConfigurationError: If a build setting is missing
        RolloutException: If login or the build fails
    """

    _require(config, BUILD_KEYS)

    image = config.image
    if registry_login:
        credentials = run_command_with_logging(logger, "log in to ECR", login, config)
        image = prepend_registry(image, credentials.endpoint)

    run_command_with_logging(
        logger,
        "build the Docker image",
        build_image,
        config.dockerfile,
        image,
        config.image_tag,
    )
    return image


def start(config: Config, registry_login: bool = True) -> RolloutResult:
    """
    Build and push the image, deploy it to the service and publish the result.

    Args:
        config: Rollout configuration
        registry_login: Whether to log in to ECR before building

    Returns:
        RolloutResult: The deployed revision

    Raises:
        MissingConfigurationError: If any required value is missing
        RolloutException: If any step fails
    """

    _require(config, BUILD_KEYS + REQUIRED_KEYS[RolloutMode.DEPLOY])

    image = build(config, registry_login)
    run_command_with_logging(
        logger, "push the image", push_image, image, config.image_tag
    )

    return run_command_with_logging(
        logger,
        f"deploy service '{config.service}'",
        _driver(config).deploy,
        repository=image,
    )


def rollout(config: Config, mode: RolloutMode) -> RolloutResult:
    """
    Run a rollout mode that doesn't involve building an image.

    Raises:
        MissingConfigurationError: If any required value is missing
        RolloutException: If any step fails
    """

    # Validate before any AWS client is created
    require_config(config, mode)
    return _driver(config).run(mode)


def report(config: Config, result: RolloutResult) -> None:
    """
    Log the outcome of a rollout.
    """

    template = result.template
    if result.mode == RolloutMode.REREGISTER:
        log_success(
            logger,
            f"Registered {template.task_definition_arn} (revision {template.revision})",
        )
    else:
        log_success(
            logger,
            f"Service '{config.service}' updated to {template.task_definition_arn} "
            f"(revision {template.revision})",
        )

    if result.image:
        logger.info("Image: %s", result.image)


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the ecs-rollout command.
    """

    parser = argparse.ArgumentParser(
        description=(
            "Build, tag and upload a Docker image and then restart an ECS service. "
            "Optionally specify a sub-command."
        )
    )
    parser.add_argument(
        "-s",
        "--sub-command",
        choices=SUB_COMMANDS,
        help="Run a single step instead of the full build and deploy",
    )
    parser.add_argument(
        "--no-login",
        dest="login",
        action="store_false",
        help="Skip logging in to ECR",
    )
    parser.add_argument(
        "--config-file",
        default=None,
        help="Path to a YAML or JSON config file (default: ./ecs-rollout.yml)",
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config_file)
        logger.debug("Image tag: %s", config.image_tag or "(none)")

        if args.sub_command == "login":
            run_command_with_logging(logger, "log in to ECR", login, config)
            log_success(logger, "Logged in to ECR")
        elif args.sub_command == "build":
            image = build(config, args.login)
            log_success(logger, f"Built {image}:{config.image_tag}")
        elif args.sub_command in SUB_COMMAND_MODES:
            report(config, rollout(config, SUB_COMMAND_MODES[args.sub_command]))
        else:
            report(config, start(config, args.login))
    except ConfigurationError as e:
        exit_with_error(logger, f"Configuration error: {e}", exc_info=False)
    except RolloutException as e:
        exit_with_error(logger, f"Rollout failed: {describe_error(e)}", exc_info=False)
    except KeyboardInterrupt:
        exit_with_error(logger, "Rollout cancelled", exc_info=False)
    except Exception as e:  # pylint: disable=broad-exception-caught
        exit_with_error(logger, f"Unexpected error: {e}")
