"""Main entry point for the Service Mesh Operator."""

from __future__ import annotations

import os
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from .constants import API_GROUP
from .tracing import initialize_tracing


def webhook_server() -> kopf.WebhookServer:
    """Admission webhook server configured from the environment.

    Environment Variables:
        WEBHOOK_PORT: Listening port (default: 9443)
        WEBHOOK_HOST: Host name the API server uses to reach the webhook
        WEBHOOK_CERTS_DIR: Directory holding tls.crt and tls.key; kopf
            generates a self-signed pair when unset
    """
    certs_dir = os.getenv("WEBHOOK_CERTS_DIR")
    return kopf.WebhookServer(
        addr="0.0.0.0",
        port=int(os.getenv("WEBHOOK_PORT", "9443")),
        host=os.getenv("WEBHOOK_HOST"),
        certfile=os.path.join(certs_dir, "tls.crt") if certs_dir else None,
        pkeyfile=os.path.join(certs_dir, "tls.key") if certs_dir else None,
    )


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = 0
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = int(os.getenv("MAX_WORKERS", "4"))

    settings.admission.server = webhook_server()
    if os.getenv("WEBHOOK_MANAGED", "true").lower() == "true":
        settings.admission.managed = f"webhook.{API_GROUP}"

    # Metrics HTTP server with health check endpoints
    health.start_metrics_server(int(os.getenv("METRICS_PORT", "8080")))
    health.mark_ready()


@kopf.on.cleanup()
def cleanup(**_: Any) -> None:
    health.mark_not_ready()
