"""
Request-scoped access to the relay service.

The service is built once per application and cached on ``app.state``.
Tests inject a service wrapping a fake chain client through ``create_app``.

Routes call ``get_relay_service`` from the handler body rather than through
``Depends``, so request validation (path pattern, body schema) always runs
first and a malformed request is a 400 even when no signing key is set.
"""

import logging
import threading

from fastapi import Request

from relayer.core.errors import RelayerNotConfiguredError
from relayer.infrastructure.blockchain.web3_service import build_chain_client
from relayer.infrastructure.zkp.zkp_service import build_verifier
from relayer.services.relay_service import RelayService

logger = logging.getLogger(__name__)

# One chain client (and so one nonce lock) per application.
_build_lock = threading.Lock()


def get_relay_service(request: Request) -> RelayService:
    state = request.app.state
    service = getattr(state, "relay_service", None)
    if service is not None:
        return service

    with _build_lock:
        service = getattr(state, "relay_service", None)
        if service is not None:
            return service

        settings = state.settings
        chain = build_chain_client(settings)
        if chain is None:
            raise RelayerNotConfiguredError()

        service = RelayService(chain, settings, build_verifier(settings))
        state.relay_service = service
    logger.info(f"[MAIN] Relay service ready (signal schema {settings.SIGNAL_SCHEMA})")
    return service
