"""
Unit tests for the rollout driver.
"""

from unittest import mock

import pytest

from ecs_rollout.config import Config
from ecs_rollout.exceptions import (
    ContainerNotFoundError,
    ImageTagNotFoundError,
    MissingConfigurationError,
    RemoteCallError,
    ServiceUpdateError,
    TemplateNotFoundError,
)
from ecs_rollout.models import RegisteredTemplate
from ecs_rollout.rollout import (
    RolloutDriver,
    RolloutMode,
    RolloutStep,
    require_config,
)
from ecs_rollout.storage import AbsentObject, JsonObject, TextObject
from tests.factories import TEMPLATE_ARN, task_definition


def _store_objects(store, objects):
    """
    Serve objects by key, everything else is absent.
    """

    store.get.side_effect = lambda bucket, key: objects.get(
        key, AbsentObject(bucket=bucket, key=key)
    )


def _registered_web_image(cluster):
    template = cluster.register_template.call_args[0][0]
    return template.container_definitions[0].image


class TestRequireConfig:
    """
    Test suite for require_config.
    """

    def test_collects_every_missing_key(self):
        """
        Test that all missing keys are reported at once.
        """

        config = Config(region="eu-west-1", service="web", image_tag="")

        with pytest.raises(MissingConfigurationError) as exc_info:
            require_config(config, RolloutMode.DEPLOY)

        assert exc_info.value.missing_keys == ["CLUSTER", "CONTAINER", "IMAGE_TAG"]
        assert "CLUSTER, CONTAINER, IMAGE_TAG" in str(exc_info.value)

    def test_restart_needs_only_service_location(self):
        require_config(
            Config(region="eu-west-1", cluster="main", service="web"), RolloutMode.RESTART
        )


class TestDeploy:
    """
    Test suite for RolloutDriver.deploy.
    """

    def test_deploy_end_to_end(self, config, cluster, store):
        """
        Test register, repoint and publish with the live task definition.
        """

        _store_objects(store, {})
        order = mock.Mock()
        order.attach_mock(cluster.register_template, "register")
        order.attach_mock(cluster.update_service, "update_service")
        order.attach_mock(store.put_text, "put_text")

        result = RolloutDriver(config, cluster, store).deploy()

        assert _registered_web_image(cluster) == "repo/app:v2"
        assert result.template.revision == 2
        assert result.image == "repo/app:v2"
        assert result.published
        cluster.update_service.assert_called_once_with(
            "main", "app-service", f"{TEMPLATE_ARN}:2"
        )
        assert [c[0] for c in order.mock_calls] == [
            "register",
            "update_service",
            "put_text",
            "put_text",
        ]
        store.put_text.assert_any_call("deploys", "app_revision", "2")
        store.put_text.assert_any_call("deploys", "app_tag", "v2")

    def test_registers_stripped_template(self, config, cluster, store):
        """
        Test that the live template is registered without ECS-assigned fields.
        """

        _store_objects(store, {})

        RolloutDriver(config, cluster, store).deploy()

        submitted = cluster.register_template.call_args[0][0]
        assert not isinstance(submitted, RegisteredTemplate)
        assert submitted.container_definitions[1].image == "repo/sidecar:3"
        assert submitted.volumes == task_definition()["volumes"]

    def test_uses_store_override(self, config, cluster, store):
        """
        Test that a stored task definition wins over the live one.
        """

        _store_objects(
            store,
            {"app_taskdefinition.json": JsonObject(value=task_definition(web_image="tf/app:1"))},
        )

        RolloutDriver(config, cluster, store).deploy()

        assert _registered_web_image(cluster) == "tf/app:v2"
        cluster.describe_template.assert_not_called()

    @mock.patch("ecs_rollout.templates.logger")
    def test_duplicate_container_warns_once(self, mock_logger, config, cluster, store):
        """
        Test that duplicate container names are reported once per rollout.
        """

        data = task_definition(revision=1)
        data["containerDefinitions"].append({"name": "web", "image": "repo/other:1"})
        cluster.describe_template.return_value = RegisteredTemplate.model_validate(data)
        _store_objects(store, {})

        RolloutDriver(config, cluster, store).deploy()

        mock_logger.warning.assert_called_once()
        submitted = cluster.register_template.call_args[0][0]
        assert [c.image for c in submitted.container_definitions] == [
            "repo/app:v2",
            "repo/sidecar:3",
            "repo/other:1",
        ]

    def test_repository_override(self, config, cluster, store):
        _store_objects(store, {})

        RolloutDriver(config, cluster, store).deploy(repository="123.dkr.ecr/app")

        assert _registered_web_image(cluster) == "123.dkr.ecr/app:v2"

    def test_without_store_does_not_publish(self, cluster, store):
        """
        Test that publishing is skipped without an S3 location.
        """

        config = Config(
            region="eu-west-1", cluster="main", service="app-service", container="web", image_tag="v2"
        )

        result = RolloutDriver(config, cluster, store).deploy()

        assert not result.published
        store.get.assert_not_called()
        store.put_text.assert_not_called()

    def test_missing_configuration_before_any_call(self, cluster, store):
        """
        Test that validation fails before anything remote is touched.
        """

        with pytest.raises(MissingConfigurationError) as exc_info:
            RolloutDriver(Config(region="eu-west-1"), cluster, store).deploy()

        assert exc_info.value.step == RolloutStep.VALIDATE
        assert cluster.mock_calls == []
        assert store.mock_calls == []

    def test_missing_container(self, config, cluster, store):
        """
        Test that a missing container aborts before registration.
        """

        _store_objects(store, {})
        config = config.model_copy(update={"container": "worker"})

        with pytest.raises(ContainerNotFoundError) as exc_info:
            RolloutDriver(config, cluster, store).deploy()

        assert exc_info.value.step == RolloutStep.MUTATE
        cluster.register_template.assert_not_called()

    def test_register_failure(self, config, cluster, store):
        _store_objects(store, {})
        cluster.register_template.side_effect = RemoteCallError("throttled")

        with pytest.raises(RemoteCallError) as exc_info:
            RolloutDriver(config, cluster, store).deploy()

        assert exc_info.value.step == RolloutStep.REGISTER
        cluster.update_service.assert_not_called()
        store.put_text.assert_not_called()

    def test_repoint_failure_keeps_orphaned_revision(self, config, cluster, store):
        """
        Test that a failed service update reports the registered revision.
        """

        _store_objects(store, {})
        cluster.update_service.side_effect = RemoteCallError(
            "denied", operation="update_service", resource="service 'app-service'"
        )

        with pytest.raises(ServiceUpdateError, match="not live") as exc_info:
            RolloutDriver(config, cluster, store).deploy()

        error = exc_info.value
        assert error.step == RolloutStep.REPOINT
        assert error.registered_template.revision == 2
        assert error.operation == "update_service"
        store.put_text.assert_not_called()


class TestRestartFromTemplate:
    """
    Test suite for RolloutDriver.restart_from_template.
    """

    def test_uses_stored_template_and_tag(self, config, cluster, store):
        """
        Test that both the template and the tag come from S3.
        """

        _store_objects(
            store,
            {
                "app_taskdefinition.json": JsonObject(value=task_definition()),
                "app_tag": TextObject(text="874_672af8"),
            },
        )
        config = config.model_copy(update={"image_tag": ""})

        result = RolloutDriver(config, cluster, store).restart_from_template()

        assert _registered_web_image(cluster) == "repo/app:874_672af8"
        assert result.mode == RolloutMode.TERRAFORM_RESTART
        cluster.describe_template.assert_not_called()
        cluster.update_service.assert_called_once()
        store.put_text.assert_any_call("deploys", "app_revision", "2")

    def test_keeps_template_scheme(self, config, cluster, store):
        """
        Test that a bare stored tag keeps the scheme of the template image.
        """

        _store_objects(
            store,
            {
                "app_taskdefinition.json": JsonObject(
                    value=task_definition(web_image="docker://repo/app:1")
                ),
                "app_tag": TextObject(text="2"),
            },
        )

        RolloutDriver(config, cluster, store).restart_from_template()

        assert _registered_web_image(cluster) == "docker://repo/app:2"

    def test_template_not_found(self, config, cluster, store):
        """
        Test that the live template is never used as a fallback.
        """

        _store_objects(store, {"app_tag": TextObject(text="v2")})

        with pytest.raises(TemplateNotFoundError, match="app_taskdefinition.json") as exc_info:
            RolloutDriver(config, cluster, store).restart_from_template()

        assert exc_info.value.step == RolloutStep.FETCH
        cluster.describe_template.assert_not_called()
        cluster.register_template.assert_not_called()

    def test_image_tag_not_found(self, config, cluster, store):
        _store_objects(
            store, {"app_taskdefinition.json": JsonObject(value=task_definition())}
        )

        with pytest.raises(ImageTagNotFoundError, match="app_tag"):
            RolloutDriver(config, cluster, store).restart_from_template()

        cluster.register_template.assert_not_called()

    def test_requires_bucket_and_key(self, cluster, store):
        config = Config(region="eu-west-1", cluster="main", service="web", container="web")

        with pytest.raises(MissingConfigurationError, match="BUCKET, KEY"):
            RolloutDriver(config, cluster, store).restart_from_template()


class TestRestart:
    """
    Test suite for RolloutDriver.restart.
    """

    def test_reregisters_live_template_verbatim(self, cluster, store, live_template):
        """
        Test that the live template is registered again unchanged.
        """

        config = Config(region="eu-west-1", cluster="main", service="app-service")

        result = RolloutDriver(config, cluster, store).restart()

        submitted = cluster.register_template.call_args[0][0]
        assert submitted == live_template.to_template()
        assert result.previous is live_template
        assert result.template.revision > live_template.revision
        assert result.container is None
        cluster.update_service.assert_called_once_with(
            "main", "app-service", f"{TEMPLATE_ARN}:2"
        )
        store.get.assert_not_called()

    def test_ignores_store_override(self, config, cluster, store):
        _store_objects(
            store, {"app_taskdefinition.json": JsonObject(value=task_definition(web_image="tf/app:1"))}
        )

        RolloutDriver(config, cluster, store).restart()

        assert _registered_web_image(cluster) == "repo/app:v1"

    def test_publishes_configured_container_tag(self, config, cluster, store):
        result = RolloutDriver(config, cluster, store).restart()

        assert result.image == "repo/app:v1"
        store.put_text.assert_any_call("deploys", "app_revision", "2")
        store.put_text.assert_any_call("deploys", "app_tag", "v1")

    def test_missing_container_fails_before_registering(self, config, cluster, store):
        """
        Test that an unknown container aborts before the service is touched.
        """

        config = config.model_copy(update={"container": "worker"})

        with pytest.raises(ContainerNotFoundError) as exc_info:
            RolloutDriver(config, cluster, store).restart()

        assert exc_info.value.step == RolloutStep.FETCH
        cluster.register_template.assert_not_called()
        cluster.update_service.assert_not_called()
        store.put_text.assert_not_called()

    def test_unparsable_image_still_publishes_revision(self, config, cluster, store):
        """
        Test that an image whose tag cannot be read doesn't fail the restart.
        """

        cluster.describe_template.return_value = RegisteredTemplate.model_validate(
            task_definition(revision=1, web_image="registry:5000/app:1")
        )

        result = RolloutDriver(config, cluster, store).restart()

        assert result.published
        cluster.update_service.assert_called_once()
        store.put_text.assert_called_once_with("deploys", "app_revision", "2")


class TestReregister:
    def test_registers_without_repointing(self, config, cluster, store):
        _store_objects(store, {})

        result = RolloutDriver(config, cluster, store).reregister()

        assert result.mode == RolloutMode.REREGISTER
        assert _registered_web_image(cluster) == "repo/app:v1"
        cluster.update_service.assert_not_called()
        store.put_text.assert_called_once_with("deploys", "app_revision", "2")


class TestRun:
    @pytest.mark.parametrize(
        "mode,method",
        [
            (RolloutMode.DEPLOY, "deploy"),
            (RolloutMode.TERRAFORM_RESTART, "restart_from_template"),
            (RolloutMode.RESTART, "restart"),
            (RolloutMode.REREGISTER, "reregister"),
        ],
    )
    def test_dispatch(self, config, cluster, store, mode, method):
        driver = RolloutDriver(config, cluster, store)

        with mock.patch.object(driver, method) as mock_method:
            driver.run(mode)

        mock_method.assert_called_once_with()
