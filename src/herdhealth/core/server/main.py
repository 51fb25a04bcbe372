"""Herd health server entry point: ``python -m herdhealth.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from herdhealth.core.config.settings import get_settings
from herdhealth.core.server.app import create_app


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the herd health MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.herd_log_level.upper(), logging.INFO))

    logger = logging.getLogger(__name__)
    if not settings.herd_allow_insecure_bind and not _is_loopback_host(settings.herd_host):
        raise RuntimeError(
            "Refusing to bind the herd health server to a non-loopback host without an "
            "auth layer. Set HERD_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    if not settings.encryption_key:
        raise RuntimeError(
            "ENCRYPTION_KEY is not set. Generate one with "
            "`python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\"`."
        )
    logger.info(
        "Starting Herd Health server on %s:%d",
        settings.herd_host,
        settings.herd_port,
    )

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.herd_host,
        port=settings.herd_port,
    )


if __name__ == "__main__":
    run()
