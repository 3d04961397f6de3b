"""
Build, push and roll out container images to ECS services.
"""

__version__ = "0.1.0"
