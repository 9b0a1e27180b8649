"""Builders for Helm values and Kubernetes objects.

All builders return plain dicts; the reconciler applies them with
kubectl apply semantics and compares them with live objects.
"""

from __future__ import annotations

import json
from typing import Any

from .models import DeploymentTarget, IngressShape, IngressSpec, IssuerSpec

INGRESS_API_VERSION = "networking.k8s.io/v1"
ISSUER_API_VERSION = "cert-manager.io/v1"

# Annotations the API server or kubectl add on their own
_MANAGED_ANNOTATION_PREFIXES = ("kubectl.kubernetes.io/",)

# =============================================================================
# Helm Values
# =============================================================================


def build_app_values(target: DeploymentTarget, *, debug: bool = False) -> dict[str, Any]:
    """Build the application chart values.

    No values are passed without a domain; the chart defaults then serve
    the platform on localhost behind port-forwarding.
    """
    if not target.domain:
        return {}
    return {
        "global": {"domain": target.domain, "debugMode": debug},
        "dex": {"config": {"issuer": f"{target.base_url}/dex"}},
    }


def build_ingress_nginx_values() -> dict[str, Any]:
    """Build values for the NGINX ingress controller chart."""
    return {
        "controller": {
            "replicaCount": 2,
            "resources": {"requests": {"cpu": "100m", "memory": "90Mi"}},
        }
    }


def build_cert_manager_values() -> dict[str, Any]:
    """Build values for the cert-manager chart."""
    return {"installCRDs": True, "prometheus": {"enabled": False}}


# =============================================================================
# Ingress
# =============================================================================


def _alb_annotations(spec: IngressSpec) -> dict[str, str]:
    annotations = {
        "alb.ingress.kubernetes.io/scheme": "internet-facing",
        "alb.ingress.kubernetes.io/target-type": "ip",
        "alb.ingress.kubernetes.io/backend-protocol": "HTTP",
    }
    if spec.certificate_arn:
        annotations["alb.ingress.kubernetes.io/listen-ports"] = json.dumps(
            [{"HTTP": 80}, {"HTTPS": 443}]
        )
        annotations["alb.ingress.kubernetes.io/certificate-arn"] = spec.certificate_arn
    else:
        annotations["alb.ingress.kubernetes.io/listen-ports"] = json.dumps([{"HTTP": 80}])
    return annotations


def build_ingress(spec: IngressSpec, *, alb_class: str = "alb") -> dict[str, Any]:
    """Build the application Ingress.

    Shapes:
        HOSTLESS: one rule without a host, reachable on the controller address
        HOST_ONLY: one rule for the domain, plain HTTP
        HOST_TLS: one rule for the domain plus TLS, either from a cert-manager
            issuer (spec.tls block and issuer annotation) or, on ALB, from an
            ACM certificate annotation

    Args:
        spec: Ingress spec
        alb_class: Ingress class name that selects the AWS load balancer variant

    Returns:
        Ingress object definition
    """
    path = {
        "path": "/",
        "pathType": "Prefix",
        "backend": {
            "service": {
                "name": spec.service_name,
                "port": {"number": spec.service_port},
            }
        },
    }
    rule: dict[str, Any] = {"http": {"paths": [path]}}
    if spec.shape is not IngressShape.HOSTLESS:
        rule = {"host": spec.host, **rule}

    annotations: dict[str, str] = {}
    body: dict[str, Any] = {"ingressClassName": spec.ingress_class}

    if spec.ingress_class == alb_class:
        annotations.update(_alb_annotations(spec))
    elif spec.shape is IngressShape.HOST_TLS:
        annotations["cert-manager.io/issuer"] = spec.issuer or ""
        annotations["nginx.ingress.kubernetes.io/ssl-redirect"] = "true"
        body["tls"] = [{"hosts": [spec.host], "secretName": spec.tls_secret}]

    body["rules"] = [rule]

    metadata: dict[str, Any] = {"name": spec.name, "namespace": spec.namespace}
    if annotations:
        metadata["annotations"] = annotations

    return {
        "apiVersion": INGRESS_API_VERSION,
        "kind": "Ingress",
        "metadata": metadata,
        "spec": body,
    }


def ingress_matches(desired: dict[str, Any], live: dict[str, Any] | None) -> bool:
    """Check whether a live Ingress already has the desired configuration.

    Compares the spec and the operator-owned annotations; status and
    server-managed metadata are ignored.
    """
    if live is None:
        return False

    live_annotations = {
        key: value
        for key, value in (live.get("metadata", {}).get("annotations") or {}).items()
        if not key.startswith(_MANAGED_ANNOTATION_PREFIXES)
    }
    desired_annotations = desired.get("metadata", {}).get("annotations") or {}
    return live_annotations == desired_annotations and live.get("spec") == desired.get("spec")


def ingress_external_address(live: dict[str, Any] | None) -> str:
    """Get the load balancer address published on an Ingress status."""
    if not live:
        return ""
    entries = live.get("status", {}).get("loadBalancer", {}).get("ingress") or []
    if not entries:
        return ""
    return entries[0].get("hostname") or entries[0].get("ip") or ""


# =============================================================================
# Issuer
# =============================================================================


def build_issuer(spec: IssuerSpec) -> dict[str, Any]:
    """Build a namespaced ACME Issuer with an HTTP-01 solver."""
    return {
        "apiVersion": ISSUER_API_VERSION,
        "kind": "Issuer",
        "metadata": {"name": spec.name, "namespace": spec.namespace},
        "spec": {
            "acme": {
                "email": spec.email,
                "server": spec.server,
                "privateKeySecretRef": {"name": spec.private_key_secret},
                "solvers": [{"http01": {"ingress": {"class": spec.ingress_class}}}],
            }
        },
    }
