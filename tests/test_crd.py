from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from activity_controller.services.crd import pipeline_activity_crd, register_pipeline_activity_crd


def test_crd_definition():
    crd = pipeline_activity_crd()
    assert crd.metadata.name == "pipelineactivities.jenkins.io"
    assert crd.spec.group == "jenkins.io"
    assert crd.spec.scope == "Namespaced"
    assert crd.spec.names.kind == "PipelineActivity"
    assert crd.spec.versions[0].name == "v1"
    assert crd.spec.versions[0].schema.open_apiv3_schema.x_kubernetes_preserve_unknown_fields is True


def test_register_creates_crd():
    api = MagicMock()
    assert register_pipeline_activity_crd(api) is True
    api.create_custom_resource_definition.assert_called_once()


def test_register_tolerates_existing_crd():
    api = MagicMock()
    api.create_custom_resource_definition.side_effect = ApiException(status=409, reason="AlreadyExists")
    assert register_pipeline_activity_crd(api) is False


def test_register_raises_other_errors():
    api = MagicMock()
    api.create_custom_resource_definition.side_effect = ApiException(status=403, reason="Forbidden")
    with pytest.raises(ApiException):
        register_pipeline_activity_crd(api)
