"""Install internal CA and client certificates for the OTLP exporter."""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Sequence

from telemetry_decorators.config.env_guard import get_system_env_value
from telemetry_decorators.config.logging_config import get_logger

log = get_logger(__name__)

CA_BUNDLE_ENV = "INTERNAL_CA_BUNDLE_PEMS"
CA_BUNDLE_FILENAME = "internal-ca-bundle.pem"
CLIENT_KEY_FILENAME = "internal-client-key.pem"
CLIENT_CERT_FILENAME = "internal-client-cert.pem"


def _write_private(path: Path, content: str) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    os.chmod(path, 0o600)


def _bundle_from_env() -> Optional[list[str]]:
    raw = get_system_env_value(CA_BUNDLE_ENV)
    if not raw:
        return None
    pems = json.loads(raw)
    if pems is not None and not isinstance(pems, list):
        raise ValueError(f"{CA_BUNDLE_ENV} must be a JSON list of PEM strings")
    return pems


def install_internal_ca_from_env(
    server_certs: Optional[Sequence[str]] = None,
    client_key: Optional[Sequence[str]] = None,
    client_cert: Optional[Sequence[str]] = None,
) -> dict[str, str]:
    """Write certificate bundles to the temp dir and point the OTLP exporter at them.

    Server certificates come from ``server_certs`` or, when empty, from the
    ``INTERNAL_CA_BUNDLE_PEMS`` JSON list. Client key and certificate are only
    installed when both are given.

    Args:
        server_certs: PEM-encoded CA certificates
        client_key: PEM-encoded client key parts
        client_cert: PEM-encoded client certificate parts

    Returns:
        The OTEL environment variables that were set

    Raises:
        json.JSONDecodeError: If the environment bundle is not valid JSON
    """
    installed: dict[str, str] = {}
    tmp_dir = Path(tempfile.gettempdir())

    pems = list(server_certs) if server_certs else _bundle_from_env()
    if pems:
        ca_path = tmp_dir / CA_BUNDLE_FILENAME
        _write_private(ca_path, "\n\n".join(pems))
        installed["OTEL_EXPORTER_OTLP_CERTIFICATE"] = str(ca_path)
        installed["OTEL_EXPORTER_OTLP_TRACES_CERTIFICATE"] = str(ca_path)
        log.info(f"Installed internal CA bundle with {len(pems)} certificate(s) at {ca_path}")

    if client_key and client_cert:
        key_path = tmp_dir / CLIENT_KEY_FILENAME
        _write_private(key_path, "\n\n".join(client_key))
        installed["OTEL_EXPORTER_OTLP_CLIENT_KEY"] = str(key_path)

        cert_path = tmp_dir / CLIENT_CERT_FILENAME
        _write_private(cert_path, "\n\n".join(client_cert))
        installed["OTEL_EXPORTER_OTLP_CLIENT_CERTIFICATE"] = str(cert_path)
        log.info("Installed internal client key and certificate")

    os.environ.update(installed)
    return installed
