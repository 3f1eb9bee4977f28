"""
Facilitator Main Entry Point
Starts a FastAPI server for facilitator operations.
"""

import sys

import uvicorn
from dotenv import load_dotenv

from x402_facilitator.chain.base import ChainClients
from x402_facilitator.chain.evm import EvmChainClient
from x402_facilitator.chain.tron import TronChainClient
from x402_facilitator.config import FacilitatorSettings
from x402_facilitator.exceptions import ConfigurationError
from x402_facilitator.facilitator import Facilitator
from x402_facilitator.logging_config import get_logger, setup_logging
from x402_facilitator.server import create_app

logger = get_logger(__name__)


def build_chain_clients(settings: FacilitatorSettings) -> ChainClients:
    """Create a chain client for every family that has a signer key"""
    clients = ChainClients()
    if settings.evm_private_key:
        clients.register(EvmChainClient(settings.evm_private_key))
    if settings.tron_private_key:
        clients.register(TronChainClient(settings.tron_private_key))
    return clients


def main() -> int:
    """Start the facilitator server"""
    load_dotenv()
    try:
        settings = FacilitatorSettings.from_env()
    except ConfigurationError as e:
        setup_logging()
        logger.error("Invalid configuration: %s", e)
        return 1
    setup_logging(settings.log_level)

    chain_clients = build_chain_clients(settings)
    if not chain_clients.families():
        logger.error("EVM_PRIVATE_KEY or TRON_PRIVATE_KEY environment variable is required")
        return 1
    for family in chain_clients.families():
        address = chain_clients.for_family(family).address()
        logger.info("Facilitator %s address: %s", family.value, address)

    facilitator = Facilitator.from_settings(settings, chain_clients)
    app = create_app(facilitator, chain_clients)

    logger.info("Starting X402 Facilitator Server on %s:%d", settings.host, settings.port)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
