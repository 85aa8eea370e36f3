"""Tests for client config and operation catalog loading."""

import re
from pathlib import Path

import pytest

from riakcs_client.config_loader import (
    build_catalog,
    build_client_config,
    load_catalog,
    load_client_config,
)
from riakcs_client.errors import ConfigurationError, ProgrammerError
from riakcs_client.models import STORAGE, BodyKind, ParamKind
from tests.conftest import FIXTURES_DIR


@pytest.fixture
def env_credentials(monkeypatch):
    monkeypatch.setenv("RIAKCS_TEST_ACCESS_KEY", "AK-FROM-ENV")
    monkeypatch.setenv("RIAKCS_TEST_SECRET_KEY", "SK-FROM-ENV")


class TestBuildClientConfig:
    def test_flat_credentials(self):
        config = build_client_config(
            {"access_key_id": "AK", "secret_access_key": "SK", "account_id": "A1", "hostname": "h"}
        )
        assert config.credentials.access_key_id == "AK"
        assert config.credentials.account_id == "A1"
        assert config.protocol == "http"
        assert config.extract_body is BodyKind.XML

    def test_nested_credentials(self):
        config = build_client_config(
            {"credentials": {"access_key_id": "AK", "secret_access_key": "SK"}, "hostname": "h"}
        )
        assert config.credentials.secret_access_key.get_secret_value() == "SK"

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError, match="hostnme"):
            build_client_config(
                {"access_key_id": "AK", "secret_access_key": "SK", "hostname": "h", "hostnme": "x"}
            )

    def test_bad_protocol(self):
        with pytest.raises(ConfigurationError, match="protocol"):
            build_client_config(
                {"access_key_id": "AK", "secret_access_key": "SK", "hostname": "h", "protocol": "ftp"}
            )

    def test_bad_extract_headers_mode(self):
        with pytest.raises(ConfigurationError, match="extract_headers"):
            build_client_config(
                {"access_key_id": "AK", "secret_access_key": "SK", "hostname": "h", "extract_headers": 3}
            )


class TestLoadClientConfig:
    def test_env_substitution(self, env_credentials):
        config = load_client_config(FIXTURES_DIR / "config.yaml")
        assert config.credentials.access_key_id == "AK-FROM-ENV"
        assert config.credentials.secret_access_key.get_secret_value() == "SK-FROM-ENV"
        assert config.protocol == "https"
        assert config.region == STORAGE

    def test_missing_env_var(self, monkeypatch):
        monkeypatch.delenv("RIAKCS_TEST_ACCESS_KEY", raising=False)
        monkeypatch.setenv("RIAKCS_TEST_SECRET_KEY", "SK")
        with pytest.raises(ConfigurationError, match="RIAKCS_TEST_ACCESS_KEY"):
            load_client_config(FIXTURES_DIR / "config.yaml")

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_client_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("hostname: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_client_config(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_client_config(path)


class TestCatalog:
    def test_load_fixture_catalog(self):
        catalog = load_catalog(FIXTURES_DIR / "catalog.yaml")
        assert set(catalog) == {"ListBuckets", "GetBucketAcl", "GetUserStats", "DeleteObjects"}

        acl = catalog["GetBucketAcl"]
        assert acl.name == "GetBucketAcl"
        assert acl.arg_specs["Acl"].type is ParamKind.RESOURCE
        assert acl.arg_specs["BucketName"].required

        stats = catalog["GetUserStats"]
        assert stats.extract_body is BodyKind.JSON
        assert isinstance(stats.extract_headers, re.Pattern)
        assert stats.extract_headers.pattern == "^x-meta-"

        assert catalog["DeleteObjects"].expected_status_code == frozenset({200, 204})
        assert catalog["DeleteObjects"].expects(204)

    def test_unknown_param_kind_is_programmer_error(self):
        with pytest.raises(ProgrammerError, match="Invalid operation Op"):
            build_catalog({"Op": {"arg_specs": {"X": {"type": "param-mystery"}}}})

    def test_unknown_body_kind_is_programmer_error(self):
        with pytest.raises(ProgrammerError):
            build_catalog({"Op": {"extract_body": "yaml"}})

    def test_regex_and_mode_exclusive(self):
        with pytest.raises(ProgrammerError, match="exclusive"):
            build_catalog({"Op": {"extract_headers": True, "extract_headers_regex": "^x-"}})

    def test_invalid_regex(self):
        with pytest.raises(ProgrammerError, match="invalid header regex"):
            build_catalog({"Op": {"extract_headers_regex": "("}})

    def test_entry_must_be_mapping(self):
        with pytest.raises(ProgrammerError, match="must be a mapping"):
            build_catalog({"Op": "GET /"})

    def test_missing_operations_key(self, tmp_path: Path):
        path = tmp_path / "catalog.yaml"
        path.write_text("ops: {}\n", encoding="utf-8")
        with pytest.raises(ProgrammerError, match="'operations'"):
            load_catalog(path)
