"""
Shared fixtures for the test suite.
"""

from unittest import mock

import pytest

from ecs_rollout.config import Config
from ecs_rollout.models import RegisteredTemplate
from tests.factories import TEMPLATE_ARN, task_definition


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """
    Remove environment variables that Config would read.
    """

    for name in Config.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)


@pytest.fixture
def config():
    """
    Configuration for a direct deploy with an S3 location.
    """

    return Config(
        region="eu-west-1",
        cluster="main",
        service="app-service",
        container="web",
        image_tag="v2",
        bucket="deploys",
        key="app",
    )


@pytest.fixture
def live_template():
    return RegisteredTemplate.model_validate(task_definition(revision=1))


@pytest.fixture
def cluster(live_template):
    """
    ClusterClient double registering every template as the next revision.
    """

    cluster = mock.Mock()
    cluster.describe_service_template_arn.return_value = live_template.task_definition_arn
    cluster.describe_template.return_value = live_template

    def register(template):
        data = template.to_api()
        data.update({"taskDefinitionArn": f"{TEMPLATE_ARN}:2", "revision": 2})
        return RegisteredTemplate.model_validate(data)

    cluster.register_template.side_effect = register
    return cluster


@pytest.fixture
def store():
    return mock.Mock()
