"""Tests for installing internal CA material for the OTLP exporter."""

import json
import os
import stat
import tempfile

import pytest

from telemetry_decorators.utils.bootstrap_ca import (
    CA_BUNDLE_ENV,
    CA_BUNDLE_FILENAME,
    CLIENT_CERT_FILENAME,
    CLIENT_KEY_FILENAME,
    install_internal_ca_from_env,
)

OTEL_VARS = (
    "OTEL_EXPORTER_OTLP_CERTIFICATE",
    "OTEL_EXPORTER_OTLP_TRACES_CERTIFICATE",
    "OTEL_EXPORTER_OTLP_CLIENT_KEY",
    "OTEL_EXPORTER_OTLP_CLIENT_CERTIFICATE",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setattr(tempfile, "gettempdir", lambda: str(tmp_path))
    monkeypatch.delenv(CA_BUNDLE_ENV, raising=False)
    for key in OTEL_VARS:
        # registered so monkeypatch restores whatever the install writes
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return tmp_path


class TestInstallInternalCa:
    def test_server_certs_argument(self, isolated_env):
        """Test installing server certificates from an argument."""
        installed = install_internal_ca_from_env(server_certs=["CERT-A", "CERT-B"])

        ca_path = isolated_env / CA_BUNDLE_FILENAME
        assert ca_path.read_text() == "CERT-A\n\nCERT-B"
        assert stat.S_IMODE(ca_path.stat().st_mode) == 0o600
        assert installed == {
            "OTEL_EXPORTER_OTLP_CERTIFICATE": str(ca_path),
            "OTEL_EXPORTER_OTLP_TRACES_CERTIFICATE": str(ca_path),
        }
        assert os.environ["OTEL_EXPORTER_OTLP_CERTIFICATE"] == str(ca_path)

    def test_bundle_from_environment(self, isolated_env, monkeypatch):
        """Test installing a bundle from the environment."""
        monkeypatch.setenv(CA_BUNDLE_ENV, json.dumps(["ENV-CERT"]))
        installed = install_internal_ca_from_env()
        assert (isolated_env / CA_BUNDLE_FILENAME).read_text() == "ENV-CERT"
        assert "OTEL_EXPORTER_OTLP_TRACES_CERTIFICATE" in installed

    def test_client_key_and_cert(self, isolated_env):
        """Test installing a client key and certificate."""
        installed = install_internal_ca_from_env(client_key=["KEY"], client_cert=["CERT"])
        assert (isolated_env / CLIENT_KEY_FILENAME).read_text() == "KEY"
        assert (isolated_env / CLIENT_CERT_FILENAME).read_text() == "CERT"
        assert set(installed) == {"OTEL_EXPORTER_OTLP_CLIENT_KEY", "OTEL_EXPORTER_OTLP_CLIENT_CERTIFICATE"}

    def test_client_key_without_cert_is_ignored(self, isolated_env):
        """Test that a client key without a certificate is ignored."""
        assert install_internal_ca_from_env(client_key=["KEY"]) == {}
        assert not (isolated_env / CLIENT_KEY_FILENAME).exists()

    def test_nothing_configured(self):
        """Test that nothing is installed by default."""
        assert install_internal_ca_from_env() == {}

    def test_invalid_bundle(self, monkeypatch):
        """Test rejecting an invalid bundle."""
        monkeypatch.setenv(CA_BUNDLE_ENV, json.dumps({"not": "a list"}))
        with pytest.raises(ValueError):
            install_internal_ca_from_env()
