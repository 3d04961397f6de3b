"""
ecs-rollout CLI.
"""

from .deploy import main as deploy_main

__all__ = ["deploy_main"]
