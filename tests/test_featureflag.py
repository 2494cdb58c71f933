import pytest

from sliceworker.featureflag import is_enabled


@pytest.mark.parametrize(
    "feature, env_name, env_value, expected",
    [
        ("abc", None, None, False),
        ("abc", "FEATURE_ABC", "true", True),
        ("ABC", "FEATURE_ABC", "true", True),
        ("abc", "ABC", "true", False),
        ("abc", "FEATURE_ABC", "false", False),
    ],
    ids=["no-env", "env", "uppercase", "invalid-format", "false"],
)
def test_feature_flag(monkeypatch, feature, env_name, env_value, expected):
    monkeypatch.delenv("FEATURE_ABC", raising=False)
    monkeypatch.delenv("ABC", raising=False)
    if env_name is not None:
        monkeypatch.setenv(env_name, env_value)
    assert is_enabled(feature) is expected


def test_value_is_case_insensitive(monkeypatch):
    monkeypatch.setenv("FEATURE_ABC", "TRUE")
    assert is_enabled("abc") is True