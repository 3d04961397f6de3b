"""
Docker command wrappers for logging in, building and pushing images.
"""

import subprocess

from ecs_rollout.exceptions import BuildError
from ecs_rollout.registry import RegistryCredentials
from ecs_rollout.utils import check_command_installed, get_logger

logger = get_logger(__name__)


def run_docker(
    args: list[str], input_text: str | None = None, silent: bool = False
) -> None:
    """
    Run a docker command, streaming its output to the console.

    Args:
        args: Arguments to pass to `docker`
        input_text: Text written to the command's stdin
        silent: Don't log the command line (e.g. when it carries secrets)

    Raises:
        CommandNotFoundError: If docker is not installed
        BuildError: If the command cannot be run or exits with a non-zero status
    """

    check_command_installed("docker")

    command = ["docker", *args]
    if not silent:
        logger.info("%s", " ".join(command))

    try:
        subprocess.run(command, input=input_text, text=True, check=True)
    except subprocess.CalledProcessError as e:
        raise BuildError(
            f"docker {args[0]} exited with code {e.returncode}"
        ) from e
    except OSError as e:
        raise BuildError(f"Failed to run docker {args[0]}: {e}") from e


def docker_login(credentials: RegistryCredentials) -> None:
    """
    Log docker in to a registry.
    """

    logger.info("Logging in to %s", credentials.endpoint)
    run_docker(
        [
            "login",
            "--username",
            credentials.username,
            "--password-stdin",
            credentials.endpoint,
        ],
        input_text=credentials.password,
        silent=True,
    )


def build_image(dockerfile: str, image: str, tag: str, context: str = ".") -> str:
    """
    Build and tag an image.

    Args:
        dockerfile: Path to the Dockerfile
        image: Image repository
        tag: Image tag
        context: Build context directory

    Returns:
        The built image reference

    Raises:
        BuildError: If the build fails
    """

    reference = f"{image}:{tag}"
    run_docker(["build", "-f", dockerfile, "-t", reference, context])
    return reference


def push_image(image: str, tag: str) -> str:
    """
    Push an image to its registry.

    Returns:
        The pushed image reference

    Raises:
        BuildError: If the push fails
    """

    reference = f"{image}:{tag}"
    run_docker(["push", reference])
    return reference
