"""
Git helper utilities for deriving default image tags.

The rollout tags images with the commit they were built from. In CI the
commit is usually exported through the environment; locally it is read from
the repository in the working directory.
"""

import subprocess
from pathlib import Path


def _run_git_command(args: list[str], cwd: Path | None = None) -> str | None:
    """
    Run a git command and return its standard output.

    Args:
        args: Arguments to pass to the `git` executable (e.g., ["rev-parse", "HEAD"]).
        cwd: Directory to run the command in. Defaults to the current directory.

    Returns:
        The command's stdout with trailing whitespace stripped, or None if the
        command fails or git is not available.
    """

    try:
        result = subprocess.run(
            ["git", *args], capture_output=True, text=True, check=True, cwd=cwd
        )
        return result.stdout.strip()
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None


def get_git_revision(cwd: Path | None = None) -> str:
    """
    Get the full SHA of the commit checked out in the working directory.

    Args:
        cwd: Repository directory. Defaults to the current directory.

    Returns:
        The commit SHA, or an empty string when it cannot be determined.
    """

    return _run_git_command(["rev-parse", "HEAD"], cwd=cwd) or ""


def short_revision(revision: str, length: int = 6) -> str:
    """
    Abbreviate a commit SHA.
    """

    return revision.strip()[:length]
