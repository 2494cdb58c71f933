"""Settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

CONTROL_PLANE_NAMESPACE = "kubeslice-system"
DEFAULT_HUB_TOKEN_FILE = "/var/run/secrets/kubernetes.io/hub-serviceaccount/token"
DEFAULT_HUB_CA_FILE = "/var/run/secrets/kubernetes.io/hub-serviceaccount/ca.crt"


def _lookup(environ: Mapping[str, str], key: str, default: str) -> str:
    value = environ.get(key)
    return value if value else default


def get_env_or_default(key: str, default: str) -> str:
    """Return the environment variable, or default when it is unset or empty."""
    return _lookup(os.environ, key, default)


@dataclass(frozen=True)
class Settings:
    cluster_name: str = ""
    project_namespace: str = ""
    hub_endpoint: str = ""
    hub_token_file: str = DEFAULT_HUB_TOKEN_FILE
    hub_ca_file: str = DEFAULT_HUB_CA_FILE
    control_plane_namespace: str = CONTROL_PLANE_NAMESPACE
    dashboard_service_account: str = "kubeslice-kubernetes-dashboard"
    hub_secret_suffix: str = "-kubernetes-dashboard"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            cluster_name=env.get("CLUSTER_NAME", ""),
            project_namespace=env.get("HUB_PROJECT_NAMESPACE", ""),
            hub_endpoint=env.get("HUB_HOST_ENDPOINT", ""),
            hub_token_file=_lookup(env, "HUB_TOKEN_FILE", DEFAULT_HUB_TOKEN_FILE),
            hub_ca_file=_lookup(env, "HUB_CA_FILE", DEFAULT_HUB_CA_FILE),
        )