"""
Helpers for reading and editing container image references.

References have the shape `[scheme://]repository[:tag]`, where the
repository path is made of word characters, `-`, `.` and `/`.
"""

import re

from ecs_rollout.exceptions import InvalidImageReferenceError

IMAGE_REFERENCE_PATTERN = re.compile(
    r"^(?:(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*)://)?"
    r"(?P<repository>[\w./-]+)"
    r"(?::(?P<tag>[\w.-]+))?$"
)


def parse_image(image: str) -> tuple[str, str, str]:
    """
    Split an image reference into its scheme, repository and tag.

    Args:
        image: Image reference (e.g. "registry.example.com/app:v1")

    Returns:
        Tuple of (scheme, repository, tag); scheme and tag are empty when absent

    Raises:
        InvalidImageReferenceError: If the reference has an unexpected shape
    """

    match = IMAGE_REFERENCE_PATTERN.match(image or "")
    if not match:
        raise InvalidImageReferenceError(f"Invalid image reference: {image!r}")

    return (
        match.group("scheme") or "",
        match.group("repository"),
        match.group("tag") or "",
    )


def format_image(scheme: str, repository: str, tag: str = "") -> str:
    """
    Join image reference parts back together.
    """

    image = f"{scheme}://{repository}" if scheme else repository
    return f"{image}:{tag}" if tag else image


def update_tag(image: str, tag: str) -> str:
    """
    Replace the tag of an image reference, keeping its scheme and repository.

    Args:
        image: Current image reference, with or without a tag
        tag: New tag

    Returns:
        The image reference pointing at the new tag

    Raises:
        InvalidImageReferenceError: If the image or the tag is invalid
    """

    scheme, repository, _ = parse_image(image)
    updated = format_image(scheme, repository, tag)

    # Validates the tag as well
    parse_image(updated)
    return updated


def update_repository(image: str, repository: str) -> str:
    """
    Point an image reference at another repository, keeping its tag.

    A scheme given with the new repository wins, otherwise the current one
    is kept.

    Raises:
        InvalidImageReferenceError: If either reference is invalid
    """

    scheme, _, tag = parse_image(image)
    new_scheme, new_repository, _ = parse_image(repository)
    return format_image(new_scheme or scheme, new_repository, tag)


def get_tag(image: str) -> str:
    """
    Get the tag of an image reference, or an empty string if it has none.
    """

    return parse_image(image)[2]


def get_repository(image: str) -> str:
    """
    Get the image reference without its tag.
    """

    scheme, repository, _ = parse_image(image)
    return format_image(scheme, repository)


def prepend_registry(image: str, endpoint: str) -> str:
    """
    Prefix a bare image name with a registry host.

    Images that already contain a "/" are returned unchanged, as is the image
    when the endpoint is not a URL (e.g. "https://123.dkr.ecr.eu-west-1.amazonaws.com").

    Args:
        image: Image name (e.g. "app")
        endpoint: Registry endpoint URL

    Returns:
        The registry-qualified image name
    """

    if "/" in image:
        return image

    parts = endpoint.split("//")
    if len(parts) != 2:
        return image

    return f"{parts[1].rstrip('/')}/{image}"
