# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import pydantic
import pytest
from oslo_config import cfg

from remote_deployer import config
from remote_deployer.exceptions import ConfigurationError


@pytest.fixture
def conf():
    conf = cfg.ConfigOpts()
    config.register_opts(conf)
    conf(args=[], default_config_files=[])
    return conf


class TestResolveEndpoint:
    """Tests for resolving the remote endpoint descriptor."""

    def test_defaults(self):
        endpoint = config.resolve_endpoint({})
        assert endpoint.scheme == "http"
        assert endpoint.hostname == "localhost"
        assert endpoint.port == 8080
        assert endpoint.container == "jboss"
        assert endpoint.credentials is None
        assert endpoint.base_url == "http://localhost:8080"

    def test_values(self):
        endpoint = config.resolve_endpoint(
            {
                "remote.protocol": "HTTPS",
                "remote.hostname": "remotehost",
                "remote.port": "8888",
                "remote.username": "john",
                "remote.password": "doe",
                "remote.timeout": "12.5",
            }
        )
        assert endpoint.base_url == "https://remotehost:8888"
        assert endpoint.credentials == ("john", "doe")
        assert endpoint.timeout == 12.5

    def test_password_hidden_from_repr(self):
        endpoint = config.resolve_endpoint({"remote.username": "john", "remote.password": "s3"})
        assert "s3" not in repr(endpoint)

    def test_user_without_password(self):
        endpoint = config.resolve_endpoint({"remote.username": "john"})
        assert endpoint.credentials == ("john", "")

    def test_ipv6_host(self):
        endpoint = config.resolve_endpoint({"remote.hostname": "fe80::1", "remote.port": "9990"})
        assert endpoint.base_url == "http://[fe80::1]:9990"

    @pytest.mark.parametrize(
        "values",
        [
            {"remote.port": "http"},
            {"remote.port": "0"},
            {"remote.port": "70000"},
            {"remote.protocol": "ftp"},
            {"remote.timeout": "-1"},
            {"remote.management-path": "jmx-console"},
            {"remote.deploy-query": "arg0=url"},
        ],
    )
    def test_invalid(self, values):
        with pytest.raises(ConfigurationError):
            config.resolve_endpoint(values)

    def test_immutable(self):
        endpoint = config.resolve_endpoint({})
        with pytest.raises(pydantic.ValidationError):
            endpoint.hostname = "other"


class TestResolveListener:
    """Tests for the file server and deploy settings."""

    def test_defaults(self):
        listener = config.resolve_listener({})
        assert listener.hostname == "0.0.0.0"
        assert listener.port == 8099

    def test_ephemeral_port(self):
        assert config.resolve_listener({"fileserver.port": "0"}).port == 0

    def test_invalid_port(self):
        with pytest.raises(ConfigurationError):
            config.resolve_listener({"fileserver.port": "65536"})

    def test_deploy_settings(self):
        settings = config.resolve_deploy_settings(
            {"deploy.timeout": "5", "deploy.verify-grace": "0.5"}
        )
        assert settings.timeout == 5
        assert settings.verify_grace == 0.5

    def test_deploy_timeout_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            config.resolve_deploy_settings({"deploy.timeout": "0"})


class TestOsloConfigSource:
    """Tests for the oslo.config backed source."""

    def test_defaults(self, conf):
        source = config.OsloConfigSource(conf)
        assert source.get("remote.hostname") == "localhost"
        assert source.get("remote.port") == "8080"
        assert source.get("remote.username") is None
        assert source.get("remote.management-path") is None

    def test_overrides(self, conf):
        conf.set_override("hostname", "jboss.example", group="remote")
        conf.set_override("management_path", "/console", group="remote")
        conf.set_override("port", 0, group="fileserver")
        source = config.OsloConfigSource(conf)
        endpoint = config.resolve_endpoint(source)
        assert endpoint.hostname == "jboss.example"
        assert endpoint.management_path == "/console"
        assert config.resolve_listener(source).port == 0

    @pytest.mark.parametrize("key", ["remote.nope", "nope.hostname", "remote"])
    def test_unknown_keys(self, conf, key):
        assert config.OsloConfigSource(conf).get(key) is None

    def test_list_opts(self):
        groups = dict(config.list_opts())
        assert set(groups) == {"remote", "fileserver", "deploy"}
