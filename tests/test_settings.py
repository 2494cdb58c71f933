from sliceworker.settings import Settings, get_env_or_default


def test_defaults_from_empty_environment():
    settings = Settings.from_env({})
    assert settings.cluster_name == ""
    assert settings.hub_token_file == "/var/run/secrets/kubernetes.io/hub-serviceaccount/token"
    assert settings.hub_ca_file == "/var/run/secrets/kubernetes.io/hub-serviceaccount/ca.crt"
    assert settings.control_plane_namespace == "kubeslice-system"
    assert settings.dashboard_service_account == "kubeslice-kubernetes-dashboard"
    assert settings.hub_secret_suffix == "-kubernetes-dashboard"


def test_values_from_environment():
    env = {
        "CLUSTER_NAME": "cluster-1",
        "HUB_PROJECT_NAMESPACE": "project-namespace",
        "HUB_HOST_ENDPOINT": "https://hub.example.com",
        "HUB_TOKEN_FILE": "/tmp/token",
        "HUB_CA_FILE": "/tmp/ca.crt",
    }
    settings = Settings.from_env(env)
    assert settings.cluster_name == "cluster-1"
    assert settings.project_namespace == "project-namespace"
    assert settings.hub_endpoint == "https://hub.example.com"
    assert settings.hub_token_file == "/tmp/token"
    assert settings.hub_ca_file == "/tmp/ca.crt"


def test_from_env_reads_process_environment(monkeypatch):
    monkeypatch.setenv("CLUSTER_NAME", "cluster-2")
    assert Settings.from_env().cluster_name == "cluster-2"


def test_get_env_or_default(monkeypatch):
    monkeypatch.delenv("WEBHOOK_CERTS_DIR", raising=False)
    assert get_env_or_default("WEBHOOK_CERTS_DIR", "/etc/webhook/certs") == "/etc/webhook/certs"
    monkeypatch.setenv("WEBHOOK_CERTS_DIR", "/srv/certs")
    assert get_env_or_default("WEBHOOK_CERTS_DIR", "/etc/webhook/certs") == "/srv/certs"
    monkeypatch.setenv("WEBHOOK_CERTS_DIR", "")
    assert get_env_or_default("WEBHOOK_CERTS_DIR", "/etc/webhook/certs") == "/etc/webhook/certs"