"""Config loader precedence, coercion, and path normalization."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from artifact_resolver.config.loader import ConfigLoadError, dump_effective_config, load_config
from artifact_resolver.config.schema import ConfigValidationError

if TYPE_CHECKING:
    from pathlib import Path

_CONFIG_TOML = """
[provider]
name = "lab"
type = "manual"
region = "us-east-1"
endpoint = "https://ec2.us-east-1.example.test"
supported_architectures = ["amd64", "arm64"]
image_stream = "daily"

[[sources.images]]
id = "mirror"
url = "https://mirror.example.test/streams"
priority = 5

[catalog]
state_db = "state/catalog.sqlite3"
binary_store = "/srv/binaries"

[observability]
log_level = "DEBUG"
log_dir = "logs/"
"""


def _write_config(tmp_path: Path, text: str = _CONFIG_TOML) -> Path:
    path = tmp_path / "artifact-resolver.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_file_values_override_defaults(tmp_path: Path) -> None:
    config = load_config(_write_config(tmp_path), environ={})

    assert config["provider"]["name"] == "lab"
    assert config["provider"]["image_stream"] == "daily"
    assert config["provider"]["default_series"] == "jammy"
    assert config["sources"]["images"] == [
        {"id": "mirror", "url": "https://mirror.example.test/streams", "priority": 5}
    ]
    assert config["observability"]["log_level"] == "DEBUG"


def test_relative_paths_are_resolved_against_config_directory(tmp_path: Path) -> None:
    config = load_config(_write_config(tmp_path), environ={})

    expected_db = tmp_path.resolve() / "state" / "catalog.sqlite3"
    assert config["catalog"]["state_db"] == expected_db.as_posix()
    assert config["catalog"]["binary_store"] == "/srv/binaries"
    assert config["observability"]["log_dir"] == (tmp_path.resolve() / "logs").as_posix()


def test_precedence_cli_over_env_over_file(tmp_path: Path) -> None:
    path = _write_config(tmp_path)
    environ = {
        "ARTIFACT_RESOLVER_PROVIDER_NAME": "from-env",
        "ARTIFACT_RESOLVER_PROVIDER_IMAGE_STREAM": "proposed",
        "ARTIFACT_RESOLVER_PROVIDER_DEVELOPMENT": "yes",
        "ARTIFACT_RESOLVER_BUILD_TIMEOUT_SECONDS": "120",
    }

    config = load_config(path, environ=environ, cli_overrides={"provider.name": "from-cli"})

    assert config["provider"]["name"] == "from-cli"
    assert config["provider"]["image_stream"] == "proposed"
    assert config["provider"]["development"] is True
    assert config["build"]["timeout_seconds"] == 120


def test_list_fields_from_env(tmp_path: Path) -> None:
    environ = {
        "ARTIFACT_RESOLVER_PROVIDER_SUPPORTED_ARCHITECTURES": "amd64, ppc64 ,",
        "ARTIFACT_RESOLVER_BUILD_COMMAND": "make -C 'agent tools' release",
    }

    config = load_config(_write_config(tmp_path), environ=environ)

    assert config["provider"]["supported_architectures"] == ["amd64", "ppc64"]
    assert config["build"]["command"] == ["make", "-C", "agent tools", "release"]


def test_string_cli_overrides_are_coerced_for_typed_fields(tmp_path: Path) -> None:
    config = load_config(
        _write_config(tmp_path),
        environ={},
        cli_overrides={
            "provider.development": "true",
            "build.timeout_seconds": "60",
            "provider.supported_architectures": "arm64",
            "provider.agent_version": "1.18.2",
            "provider.region": None,
        },
    )

    assert config["provider"]["development"] is True
    assert config["build"]["timeout_seconds"] == 60
    assert config["provider"]["supported_architectures"] == ["arm64"]
    assert config["provider"]["agent_version"] == "1.18.2"
    assert config["provider"]["region"] == "us-east-1"


@pytest.mark.parametrize(
    ("environ", "message"),
    [
        ({"ARTIFACT_RESOLVER_PROVIDER_DEVELOPMENT": "maybe"}, "must be a boolean"),
        ({"ARTIFACT_RESOLVER_BUILD_TIMEOUT_SECONDS": "soon"}, "must be an integer"),
        ({"ARTIFACT_RESOLVER_BUILD_COMMAND": "make 'unterminated"}, "shell-style command line"),
    ],
)
def test_bad_env_values_raise_load_errors(
    tmp_path: Path, environ: dict[str, str], message: str
) -> None:
    with pytest.raises(ConfigLoadError, match=message):
        load_config(_write_config(tmp_path), environ=environ)


def test_invalid_override_is_rejected_by_validation(tmp_path: Path) -> None:
    with pytest.raises(ConfigValidationError, match="provider.supported_architectures"):
        load_config(
            _write_config(tmp_path),
            environ={},
            cli_overrides={"provider.supported_architectures": "sparc"},
        )


def test_explicit_missing_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "absent.toml", environ={})


def test_invalid_toml_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(_write_config(tmp_path, "[provider\nname = 1"), environ={})


def test_missing_default_file_uses_defaults(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)

    config = load_config(environ={})

    assert config["provider"]["name"] == "local"
    expected_db = tmp_path.resolve() / "state" / "catalog.sqlite3"
    assert config["catalog"]["state_db"] == expected_db.as_posix()


def test_dump_effective_config_is_redacted_sorted_json(tmp_path: Path) -> None:
    config = load_config(_write_config(tmp_path), environ={})
    config["provider"]["api_password"] = "hunter2"

    dumped = dump_effective_config(config)

    payload = json.loads(dumped)
    assert payload["provider"]["api_password"] == "<redacted>"
    assert "hunter2" not in dumped
    assert list(payload) == sorted(payload)
