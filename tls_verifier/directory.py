"""
Cluster directory backed by the Kubernetes API.
"""

from typing import Any, List, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException

from tls_verifier.logger import get_logger
from tls_verifier.models import ServiceTarget


class DirectoryError(Exception):
    """The service list could not be obtained."""


class ClusterDirectory:
    """
    Lists every service of the cluster with its namespace and ports.

    Uses the in-cluster service account by default. When ``kubeconfig`` is
    given the client is configured from that file instead, which is handy
    when running outside the cluster.
    """

    def __init__(self, kubeconfig: Optional[str] = None, core_v1: Optional[Any] = None):
        self.kubeconfig = kubeconfig
        self.logger = get_logger("directory")
        self._core_v1 = core_v1

    def _client(self) -> Any:
        if self._core_v1 is None:
            try:
                if self.kubeconfig:
                    config.load_kube_config(config_file=self.kubeconfig)
                    self.logger.info(f"Loaded kubeconfig from {self.kubeconfig}")
                else:
                    config.load_incluster_config()
                    self.logger.info("Loaded in-cluster Kubernetes configuration")
            except (ConfigException, OSError) as e:
                raise DirectoryError(f"Could not load Kubernetes configuration: {e}") from e

            self._core_v1 = client.CoreV1Api()
        return self._core_v1

    def list_services(self) -> List[ServiceTarget]:
        """
        List all services across all namespaces.

        Returns:
            ServiceTargets in the order the API returned them

        Raises:
            DirectoryError: the configuration or the API call failed
        """
        core_v1 = self._client()
        try:
            services = core_v1.list_service_for_all_namespaces(watch=False)
        except ApiException as e:
            raise DirectoryError(f"Could not list services: {e.status} {e.reason}") from e
        except Exception as e:
            raise DirectoryError(f"Could not list services: {e}") from e

        return [_to_target(svc) for svc in services.items]


def _to_target(svc: Any) -> ServiceTarget:
    ports = (svc.spec.ports or []) if svc.spec else []
    return ServiceTarget(
        name=svc.metadata.name,
        namespace=svc.metadata.namespace,
        # Same number over TCP and UDP is one TLS endpoint
        ports=tuple(dict.fromkeys(p.port for p in ports)),
    )
