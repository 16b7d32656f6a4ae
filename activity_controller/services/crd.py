"""
CRD Registration
================
Ensures the PipelineActivity CustomResourceDefinition exists before the
controller starts writing activities.
"""
import logging

from kubernetes import client
from kubernetes.client.rest import ApiException

from activity_controller.core.constants import (
    CRD_GROUP,
    CRD_KIND,
    CRD_NAME,
    CRD_PLURAL,
    CRD_SHORT_NAMES,
    CRD_SINGULAR,
    CRD_VERSION,
)

logger = logging.getLogger(__name__)


def pipeline_activity_crd() -> client.V1CustomResourceDefinition:
    schema = client.V1JSONSchemaProps(
        type="object",
        x_kubernetes_preserve_unknown_fields=True,
    )
    return client.V1CustomResourceDefinition(
        api_version="apiextensions.k8s.io/v1",
        kind="CustomResourceDefinition",
        metadata=client.V1ObjectMeta(name=CRD_NAME),
        spec=client.V1CustomResourceDefinitionSpec(
            group=CRD_GROUP,
            scope="Namespaced",
            names=client.V1CustomResourceDefinitionNames(
                kind=CRD_KIND,
                plural=CRD_PLURAL,
                singular=CRD_SINGULAR,
                short_names=CRD_SHORT_NAMES,
                categories=["all"],
            ),
            versions=[
                client.V1CustomResourceDefinitionVersion(
                    name=CRD_VERSION,
                    served=True,
                    storage=True,
                    schema=client.V1CustomResourceValidation(open_apiv3_schema=schema),
                )
            ],
        ),
    )


def register_pipeline_activity_crd(apiextensions_api) -> bool:
    """
    Create the PipelineActivity CRD if it is not registered yet.

    Returns True when this call created it. Any failure other than
    "already exists" is raised: the controller cannot run without the CRD.
    """
    try:
        apiextensions_api.create_custom_resource_definition(pipeline_activity_crd())
    except ApiException as e:
        if e.status == 409:
            logger.debug("CRD %s already registered", CRD_NAME)
            return False
        raise
    logger.info("Registered CRD %s", CRD_NAME)
    return True
