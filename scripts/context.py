"""
Process-wide collaborators resolved once at start-up and handed to every command
"""

import logging
from dataclasses import dataclass
from typing import Optional

from offchain.chain import ChainClient
from offchain.config import Settings, configure_logging
from offchain.constants import HARDHAT, AddressRegistry
from offchain.deployments import DeploymentStore
from offchain.verifier import ExplorerVerifier

logger = logging.getLogger(__name__)

LOCAL_NETWORKS = ('localhost', 'hardhat', 'development')


@dataclass
class OpsContext:
    settings: Settings
    chain: ChainClient
    registry: AddressRegistry
    store: DeploymentStore
    verifier: Optional[ExplorerVerifier] = None


def build_context(settings: Settings) -> OpsContext:
    configure_logging(settings)
    chain = ChainClient(settings)
    chain_id = chain.chain_id
    registry = AddressRegistry.for_chain(chain_id)
    store = DeploymentStore(settings.deployments_dir, settings.network)

    verifier = None
    if settings.network not in LOCAL_NETWORKS and chain_id != HARDHAT:
        verifier = ExplorerVerifier(
            settings.explorer_api_url,
            settings.explorer_api_key,
            chain_id,
            artifacts_dir=settings.artifacts_dir,
        )
    else:
        logger.info(f"Explorer verification disabled on {settings.network}")

    logger.info(f"Operating on {settings.network} (chain {chain_id})")
    return OpsContext(settings, chain, registry, store, verifier)
