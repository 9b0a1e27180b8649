from __future__ import annotations

from cachetools.func import lru_cache  # type: ignore

from ogdeploy.infra.k8s.controller import KubernetesController


@lru_cache(maxsize=1)
def get_k8s_controller() -> KubernetesController:
    """Get the shared KubernetesController instance.

    Returns:
        An instance of KubernetesController
    """
    from ogdeploy.infra.k8s.kr8s_controller import Kr8sController

    return Kr8sController()
