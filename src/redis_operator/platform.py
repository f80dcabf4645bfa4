"""Platform API boundary.

The core talks to the orchestration platform only through ``PlatformClient``:
a label-selected pod list and an atomic create. ``KubernetesPlatform`` is
the production implementation on top of the official kubernetes client.
"""

import asyncio
import json
import logging
from typing import Any, Protocol

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from redis_operator.errors import (
    ALREADY_EXISTS_PHRASE,
    PlatformQueryError,
    ResourceAlreadyExistsError,
    ResourceApplyError,
)
from redis_operator.resources import ResourceKind, ResourceSpec

logger = logging.getLogger(__name__)


class PlatformClient(Protocol):
    """What the reconciliation core needs from the platform."""

    async def list_pods(self, namespace: str, labels: dict[str, str]) -> list[Any]:
        """List pods in ``namespace`` matching every label in ``labels``."""
        ...

    async def create(self, spec: ResourceSpec) -> None:
        """Create ``spec``.

        Raises ``ResourceAlreadyExistsError`` on a name collision and
        ``ResourceApplyError`` on any other failure.
        """
        ...


def label_selector(labels: dict[str, str]) -> str:
    """Render a label mapping as a Kubernetes equality selector."""
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


def _error_reason(exc: ApiException) -> str:
    """Extract the API status reason/message from an ApiException body."""
    body = getattr(exc, "body", None)
    if body:
        try:
            data = json.loads(body)
        except (TypeError, ValueError):
            return str(body)
        if isinstance(data, dict):
            return data.get("message") or data.get("reason") or str(body)
    return exc.reason or str(exc)


def translate_create_error(spec: ResourceSpec, exc: ApiException) -> Exception:
    """Map a create failure onto the operator's typed errors."""
    message = _error_reason(exc)
    conflict = exc.status == 409 and (
        "AlreadyExists" in (exc.body or "") or ALREADY_EXISTS_PHRASE in message
    )
    if conflict or ALREADY_EXISTS_PHRASE in message:
        return ResourceAlreadyExistsError(spec.kind.value, spec.name, message)
    return ResourceApplyError(spec.kind.value, spec.name, message, status=exc.status)


_kube_config_loaded = False


def load_kube_config(context: str | None = None) -> None:
    """Load in-cluster config, falling back to the local kubeconfig. Runs once."""
    global _kube_config_loaded
    if _kube_config_loaded:
        return
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster kubernetes config")
    except config.ConfigException:
        config.load_kube_config(context=context)
        logger.info("Loaded kubeconfig (context=%s)", context or "current")
    _kube_config_loaded = True


class KubernetesPlatform:
    """PlatformClient backed by the kubernetes CoreV1 API.

    Blocking client calls run in a worker thread so callers can cancel or
    time out the awaiting coroutine.
    """

    def __init__(
        self,
        core_api: client.CoreV1Api | None = None,
        request_timeout: float = 30.0,
        context: str | None = None,
    ):
        if core_api is None:
            load_kube_config(context)
            core_api = client.CoreV1Api()
        self.core_api = core_api
        self.request_timeout = request_timeout

    async def list_pods(self, namespace: str, labels: dict[str, str]) -> list[Any]:
        selector = label_selector(labels)
        try:
            pods = await asyncio.to_thread(
                self.core_api.list_namespaced_pod,
                namespace,
                label_selector=selector,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise PlatformQueryError(namespace, labels, _error_reason(e)) from e
        except (HTTPError, OSError) as e:
            raise PlatformQueryError(namespace, labels, str(e)) from e
        return list(pods.items or [])

    async def create(self, spec: ResourceSpec) -> None:
        try:
            await asyncio.to_thread(self._create_sync, spec)
        except ApiException as e:
            raise translate_create_error(spec, e) from e
        except (HTTPError, OSError) as e:
            raise ResourceApplyError(spec.kind.value, spec.name, str(e)) from e

    def _create_sync(self, spec: ResourceSpec) -> Any:
        kwargs = {"_request_timeout": self.request_timeout}
        if spec.kind is ResourceKind.NAMESPACE:
            return self.core_api.create_namespace(spec.manifest, **kwargs)
        if spec.kind is ResourceKind.CONFIG_MAP:
            return self.core_api.create_namespaced_config_map(
                spec.namespace, spec.manifest, **kwargs
            )
        if spec.kind in (ResourceKind.SERVICE, ResourceKind.HEADLESS_SERVICE):
            return self.core_api.create_namespaced_service(spec.namespace, spec.manifest, **kwargs)
        if spec.kind is ResourceKind.POD:
            return self.core_api.create_namespaced_pod(spec.namespace, spec.manifest, **kwargs)
        raise ResourceApplyError(spec.kind.value, spec.name, "unsupported resource kind")
