"""
Kubernetes CronJob integration.

Lists CronJobs through the official client (one ApiClient per kubeconfig
context) and writes the ping id back with a strategic-merge patch that only
touches the named env var of each job-template container. The client is
synchronous; calls are pushed to worker threads so several targets can be
enumerated in parallel.
"""
from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from healthkube.config import KUBE_REQUEST_TIMEOUT
from healthkube.errors import ConfigurationError, RemoteServiceError, is_transient_status
from healthkube.integrations.base import WorkloadSource
from healthkube.models.descriptors import WorkloadDescriptor
from healthkube.utils import get_logger

logger = get_logger(__name__)

SERVICE_PREFIX = "kubernetes"
PAGE_SIZE = 250


def service_name(context: str) -> str:
    return f"{SERVICE_PREFIX}:{context}"


def _container_env_value(container: Any, env_key: str) -> Optional[str]:
    for env in container.env or []:
        if env.name == env_key:
            return env.value
    return None


def cron_job_to_descriptor(context: str, job: Any, env_key: Optional[str] = None) -> Optional[WorkloadDescriptor]:
    """Normalize a V1CronJob. Returns None for objects missing name or schedule."""
    metadata = job.metadata
    spec = job.spec
    if metadata is None or spec is None or not metadata.name or not spec.schedule:
        return None

    containers: list = []
    template = spec.job_template.spec.template.spec if spec.job_template and spec.job_template.spec else None
    if template is not None and template.containers:
        containers = list(template.containers)

    current: Optional[str] = None
    if env_key and containers:
        values = {_container_env_value(c, env_key) for c in containers}
        # Only a value shared by every container counts as already applied
        if len(values) == 1:
            current = values.pop()

    return WorkloadDescriptor(
        context=context,
        namespace=metadata.namespace or "default",
        name=metadata.name,
        schedule=spec.schedule,
        suspended=bool(spec.suspend),
        current_env_value=current,
        time_zone=getattr(spec, "time_zone", None),
        containers=tuple(c.name for c in containers),
    )


def env_patch_body(containers: Sequence[str], key: str, value: str) -> Dict[str, Any]:
    """Strategic-merge patch: containers merge by name, env entries merge by name."""
    return {
        "spec": {
            "jobTemplate": {
                "spec": {
                    "template": {
                        "spec": {
                            "containers": [
                                {"name": name, "env": [{"name": key, "value": value}]}
                                for name in containers
                            ]
                        }
                    }
                }
            }
        }
    }


class KubernetesWorkloadSource(WorkloadSource):
    """CronJob source backed by kubeconfig contexts."""

    def __init__(
        self,
        config_file: Optional[str] = None,
        *,
        request_timeout: Optional[float] = None,
        api_factory: Optional[Callable[[str], Any]] = None,
    ):
        self.config_file = config_file
        self.request_timeout = float(request_timeout if request_timeout is not None else KUBE_REQUEST_TIMEOUT)
        self._api_factory = api_factory or self._default_api_factory
        self._apis: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def _default_api_factory(self, context: str) -> Any:
        try:
            api_client = k8s_config.new_client_from_config(config_file=self.config_file, context=context)
        except ConfigException as e:
            raise ConfigurationError(f"Unable to load kubeconfig context {context!r}: {e}") from e
        return k8s_client.BatchV1Api(api_client)

    def _api(self, context: str) -> Any:
        with self._lock:
            api = self._apis.get(context)
            if api is None:
                api = self._api_factory(context)
                self._apis[context] = api
            return api

    def _translate(self, context: str, action: str, exc: Exception) -> RemoteServiceError:
        if isinstance(exc, ApiException):
            return RemoteServiceError(
                f"Kubernetes {action} failed in context {context!r}: HTTP {exc.status} {exc.reason}",
                service=service_name(context),
                status_code=exc.status,
                transient=is_transient_status(exc.status),
                payload=exc.body,
            )
        return RemoteServiceError(
            f"Kubernetes {action} failed in context {context!r}: {exc!r}",
            service=service_name(context),
            transient=True,
        )

    def _list(self, context: str, namespace: Optional[str], env_key: Optional[str]) -> List[WorkloadDescriptor]:
        api = self._api(context)
        descriptors: List[WorkloadDescriptor] = []
        token: Optional[str] = None
        while True:
            kwargs: Dict[str, Any] = {"limit": PAGE_SIZE, "_request_timeout": self.request_timeout}
            if token:
                kwargs["_continue"] = token
            try:
                if namespace is None:
                    page = api.list_cron_job_for_all_namespaces(**kwargs)
                else:
                    page = api.list_namespaced_cron_job(namespace, **kwargs)
            except (ApiException, Urllib3HTTPError) as e:
                raise self._translate(context, "list cronjobs", e) from e
            for job in page.items or []:
                descriptor = cron_job_to_descriptor(context, job, env_key)
                if descriptor is None:
                    logger.warning("Skipping cronjob without name or schedule", context=context, namespace=namespace)
                    continue
                descriptors.append(descriptor)
            token = page.metadata._continue if page.metadata else None
            if not token:
                break
        logger.debug("Listed cronjobs", context=context, namespace=namespace or "*", count=len(descriptors))
        return descriptors

    def _containers(self, context: str, namespace: str, job_name: str) -> List[str]:
        api = self._api(context)
        try:
            job = api.read_namespaced_cron_job(job_name, namespace, _request_timeout=self.request_timeout)
        except (ApiException, Urllib3HTTPError) as e:
            raise self._translate(context, "read cronjob", e) from e
        descriptor = cron_job_to_descriptor(context, job)
        return list(descriptor.containers) if descriptor else []

    def _patch(self, context: str, namespace: str, job_name: str, key: str, value: str, containers: Optional[Sequence[str]]) -> None:
        names = list(containers) if containers else self._containers(context, namespace, job_name)
        if not names:
            raise RemoteServiceError(
                f"CronJob {namespace}/{job_name} has no containers to patch",
                service=service_name(context),
            )
        api = self._api(context)
        try:
            api.patch_namespaced_cron_job(
                job_name,
                namespace,
                env_patch_body(names, key, value),
                _request_timeout=self.request_timeout,
            )
        except (ApiException, Urllib3HTTPError) as e:
            raise self._translate(context, "patch cronjob", e) from e

    async def list_scheduled_jobs(self, context: str, namespace: Optional[str], env_key: Optional[str] = None) -> List[WorkloadDescriptor]:
        return await asyncio.to_thread(self._list, context, namespace, env_key)

    async def patch_env_var(
        self,
        context: str,
        namespace: str,
        job_name: str,
        key: str,
        value: str,
        *,
        containers: Optional[Sequence[str]] = None,
    ) -> None:
        await asyncio.to_thread(self._patch, context, namespace, job_name, key, value, containers)


__all__ = [
    "KubernetesWorkloadSource",
    "cron_job_to_descriptor",
    "env_patch_body",
    "service_name",
]
