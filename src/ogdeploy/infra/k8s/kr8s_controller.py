"""Kr8s-based implementation of KubernetesController.

Uses the kr8s library for native async Kubernetes operations. Operations
that kr8s has no direct equivalent for (kubeconfig edits, apply, CRDs)
shell out to kubectl in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import subprocess
from typing import Any

import kr8s
import yaml
from kr8s.asyncio.objects import Ingress, Job, Namespace, Node, Pod, Service
from loguru import logger

from .controller import (
    ClusterQueryError,
    CommandResult,
    IssuerStatus,
    JobInfo,
    KubernetesController,
    NodeInfo,
    PodInfo,
    ServiceInfo,
)


class Kr8sController(KubernetesController):
    """Kubernetes controller using kr8s library.

    Note: The kr8s API client is NOT cached because it's tied to the event loop
    that was running when created. run_sync() creates a new event loop per
    call, so a cached client would be unusable.
    """

    async def _get_api(self) -> Any:  # Returns kr8s._api.Api
        """Create a kr8s API client bound to the current event loop."""
        return await kr8s.asyncio.api()

    async def _kubectl(self, args: list[str], input_data: str | None = None) -> CommandResult:
        """Run a kubectl command in a worker thread."""
        cmd = ["kubectl", *args]

        def _run() -> CommandResult:
            logger.debug("$ {}", " ".join(cmd))
            try:
                result = subprocess.run(
                    cmd,
                    input=input_data,
                    capture_output=True,
                    text=True,
                )
            except FileNotFoundError:
                return CommandResult(
                    success=False, stderr="kubectl: command not found", returncode=127
                )
            if result.stdout:
                logger.debug(result.stdout.rstrip())
            if result.stderr:
                logger.debug(result.stderr.rstrip())
            return CommandResult(
                success=result.returncode == 0,
                stdout=result.stdout or "",
                stderr=result.stderr or "",
                returncode=result.returncode,
            )

        return await asyncio.to_thread(_run)

    # =========================================================================
    # Cluster Context
    # =========================================================================

    async def get_current_context(self) -> str:
        """Get the current kubectl context name."""
        result = await self._kubectl(["config", "current-context"])
        return result.stdout.strip() if result.success else ""

    async def get_cluster_server(self) -> str:
        """Get the API server URL of the current context."""
        result = await self._kubectl(["config", "view", "--minify", "-o", "json"])
        if not result.success:
            return ""
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError:
            return ""
        clusters = data.get("clusters") or []
        if not clusters:
            return ""
        return clusters[0].get("cluster", {}).get("server", "")

    async def is_cluster_reachable(self) -> bool:
        """Check that the API server answers a version request."""
        try:
            api = await self._get_api()
            await api.version()
            return True
        except Exception as e:
            logger.debug("Cluster not reachable: {}", e)
            return False

    async def unset_current_context(self) -> CommandResult:
        """Clear the current kubectl context."""
        return await self._kubectl(["config", "unset", "current-context"])

    async def get_nodes(self) -> list[NodeInfo]:
        """Get all nodes with their Ready condition."""
        try:
            api = await self._get_api()
            result = []
            async for node in Node.list(api=api):
                conditions = node.status.get("conditions", [])
                ready = any(
                    c.get("type") == "Ready" and c.get("status") == "True"
                    for c in conditions
                )
                result.append(NodeInfo(name=node.name, ready=ready))
            return result
        except Exception:
            return []

    # =========================================================================
    # Namespace Operations
    # =========================================================================

    async def namespace_exists(self, namespace: str) -> bool:
        """Check if a namespace exists."""
        try:
            api = await self._get_api()
            ns = await Namespace.get(namespace, api=api)
            return ns is not None
        except kr8s.NotFoundError:
            return False
        except Exception:
            return False

    async def delete_namespace(
        self,
        namespace: str,
        *,
        wait: bool = True,
        timeout: str = "120s",
    ) -> CommandResult:
        """Delete a Kubernetes namespace and all its resources."""
        try:
            api = await self._get_api()
            ns = await Namespace.get(namespace, api=api)
            await ns.delete()

            if wait:
                try:
                    await asyncio.wait_for(
                        self._wait_for_namespace_deletion(namespace),
                        timeout=self._parse_timeout(timeout),
                    )
                except TimeoutError:
                    return CommandResult(
                        success=False,
                        stderr=f"Timeout waiting for namespace {namespace} deletion",
                        returncode=1,
                    )

            return CommandResult(success=True, stdout=f'namespace "{namespace}" deleted')
        except kr8s.NotFoundError:
            return CommandResult(
                success=False,
                stderr=f'namespace "{namespace}" not found',
                returncode=1,
            )
        except Exception as e:
            return CommandResult(success=False, stderr=str(e), returncode=1)

    async def _wait_for_namespace_deletion(self, namespace: str) -> None:
        """Wait until a namespace no longer exists."""
        while await self.namespace_exists(namespace):
            await asyncio.sleep(1)

    # =========================================================================
    # Resource Operations
    # =========================================================================

    async def apply_manifest(self, manifest: dict[str, Any]) -> CommandResult:
        """Apply an object definition through kubectl apply -f -.

        Note: kr8s doesn't have a direct 'apply' equivalent.
        """
        return await self._kubectl(
            ["apply", "-f", "-"], input_data=yaml.safe_dump(manifest, sort_keys=False)
        )

    async def get_ingress(self, name: str, namespace: str) -> dict[str, Any] | None:
        """Get the live definition of an Ingress."""
        try:
            api = await self._get_api()
            ingress = await Ingress.get(name, namespace=namespace, api=api)
            return dict(ingress.raw)
        except kr8s.NotFoundError:
            return None
        except Exception as e:
            logger.debug("Failed to read ingress {}/{}: {}", namespace, name, e)
            return None

    # =========================================================================
    # Pod Operations
    # =========================================================================

    async def get_pods(
        self, namespace: str, label_selector: str | None = None
    ) -> list[PodInfo]:
        """Get pods in a namespace with their effective status."""
        try:
            api = await self._get_api()
            result = []

            kwargs: dict[str, Any] = {"namespace": namespace, "api": api}
            if label_selector:
                kwargs["label_selector"] = label_selector

            async for pod in Pod.list(**kwargs):
                metadata = pod.metadata
                spec = pod.spec
                status = pod.status

                pod_status = status.get("phase", "Unknown")
                restarts = 0
                for cs in status.get("containerStatuses", []):
                    restarts += cs.get("restartCount", 0)
                    state = cs.get("state", {})
                    if "waiting" in state:
                        reason = state["waiting"].get("reason", "")
                        if reason:
                            pod_status = reason
                    elif "terminated" in state:
                        reason = state["terminated"].get("reason", "")
                        if reason == "Error":
                            pod_status = "Error"

                result.append(
                    PodInfo(
                        name=metadata.get("name", ""),
                        status=pod_status,
                        restarts=restarts,
                        node=spec.get("nodeName", ""),
                    )
                )

            return result
        except kr8s.NotFoundError:
            return []
        except Exception as e:
            raise ClusterQueryError(f"Failed to list pods in {namespace}: {e}") from e

    async def delete_pods_by_label(
        self, namespace: str, label_selector: str
    ) -> CommandResult:
        """Delete pods matching a label selector."""
        return await self._kubectl(["delete", "pods", "-n", namespace, "-l", label_selector])

    # =========================================================================
    # Job Operations
    # =========================================================================

    async def get_jobs(self, namespace: str) -> list[JobInfo]:
        """Get all jobs in a namespace with their status."""
        try:
            api = await self._get_api()
            result = []

            async for job in Job.list(namespace=namespace, api=api):
                status = job.status

                if status.get("succeeded", 0) > 0:
                    job_status = "Complete"
                elif status.get("failed", 0) > 0:
                    job_status = "Failed"
                elif status.get("active", 0) > 0:
                    job_status = "Running"
                else:
                    job_status = "Unknown"

                result.append(JobInfo(name=job.metadata.get("name", ""), status=job_status))

            return result
        except kr8s.NotFoundError:
            return []
        except Exception as e:
            raise ClusterQueryError(f"Failed to list jobs in {namespace}: {e}") from e

    # =========================================================================
    # Service Operations
    # =========================================================================

    async def get_services(self, namespace: str) -> list[ServiceInfo]:
        """Get all services in a namespace."""
        try:
            api = await self._get_api()
            result = []

            async for svc in Service.list(namespace=namespace, api=api):
                spec = svc.spec
                status = svc.status

                # LoadBalancer address, IP first then hostname (ELB)
                external_ip = ""
                lb_ingress = status.get("loadBalancer", {}).get("ingress", [])
                if lb_ingress:
                    external_ip = lb_ingress[0].get("ip", lb_ingress[0].get("hostname", ""))

                ports = []
                for port in spec.get("ports", []):
                    port_str = f"{port.get('port')}"
                    if target := port.get("targetPort"):
                        port_str += f":{target}"
                    if proto := port.get("protocol"):
                        port_str += f"/{proto}"
                    ports.append(port_str)

                result.append(
                    ServiceInfo(
                        name=svc.metadata.get("name", ""),
                        type=spec.get("type", ""),
                        cluster_ip=spec.get("clusterIP", ""),
                        external_ip=external_ip,
                        ports=",".join(ports),
                    )
                )

            return result
        except Exception:
            return []

    # =========================================================================
    # Cert-Manager Operations
    # =========================================================================

    async def get_issuer_status(self, name: str, namespace: str) -> IssuerStatus:
        """Get the status of a namespaced cert-manager Issuer.

        Note: Uses kubectl as Issuer is a CRD.
        """
        result = await self._kubectl(["get", "issuer", name, "-n", namespace, "-o", "json"])
        if not result.success:
            return IssuerStatus(exists=False, ready=False, message="Issuer not found")

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError:
            return IssuerStatus(
                exists=True, ready=False, message="Failed to parse Issuer status"
            )

        for condition in data.get("status", {}).get("conditions", []):
            if condition.get("type") == "Ready":
                return IssuerStatus(
                    exists=True,
                    ready=condition.get("status") == "True",
                    message=condition.get("message", ""),
                )
        return IssuerStatus(exists=True, ready=False)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _parse_timeout(self, timeout: str) -> float:
        """Parse a timeout string like '120s' or '5m' to seconds."""
        if timeout.endswith("s"):
            return float(timeout[:-1])
        elif timeout.endswith("m"):
            return float(timeout[:-1]) * 60
        elif timeout.endswith("h"):
            return float(timeout[:-1]) * 3600
        else:
            return float(timeout)
