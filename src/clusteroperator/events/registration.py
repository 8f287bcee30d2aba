"""Registration of the watched cluster resource type."""

from __future__ import annotations

import structlog
from kubernetes import client

from clusteroperator.config import Settings
from clusteroperator.core.errors import AlreadyExistsError
from clusteroperator.resources.base import ResourceKind
from clusteroperator.resources.kubernetes import kube_call, run_sync

logger = structlog.get_logger()


def cluster_definition(settings: Settings) -> client.V1CustomResourceDefinition:
    schema = client.V1JSONSchemaProps(type="object", x_kubernetes_preserve_unknown_fields=True)
    return client.V1CustomResourceDefinition(
        metadata=client.V1ObjectMeta(name=f"{settings.crd_plural}.{settings.crd_group}"),
        spec=client.V1CustomResourceDefinitionSpec(
            group=settings.crd_group,
            scope="Namespaced",
            names=client.V1CustomResourceDefinitionNames(
                plural=settings.crd_plural,
                singular=settings.crd_kind.lower(),
                kind=settings.crd_kind,
            ),
            versions=[
                client.V1CustomResourceDefinitionVersion(
                    name=settings.crd_version,
                    served=True,
                    storage=True,
                    schema=client.V1CustomResourceValidation(open_apiv3_schema=schema),
                )
            ],
        ),
    )


async def ensure_registered(
    api_client: client.ApiClient,
    settings: Settings,
    already_registered: bool = False,
) -> bool:
    """
    Register the cluster resource type unless that already happened.

    Called once at process start, before any event is consumed. An existing
    definition counts as registered.

    Returns:
        True once the type is registered
    """
    if already_registered:
        return True

    definition = cluster_definition(settings)
    name = definition.metadata.name
    api = client.ApiextensionsV1Api(api_client)
    try:
        with kube_call(ResourceKind.DEFINITION, name, "create"):
            await run_sync(api.create_custom_resource_definition, definition)
    except AlreadyExistsError:
        logger.info("resource_type_already_registered", name=name)
        return True

    logger.info("resource_type_registered", name=name)
    return True
