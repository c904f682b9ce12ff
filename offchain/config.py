#!/usr/bin/env python3
"""
Environment configuration and logging setup shared by every script
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import PreconditionError

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

DEFAULT_EXPLORER_API_URL = "https://api.etherscan.io/v2/api"


@dataclass
class Settings:
    """Runtime settings resolved from the environment (and .env) once per process"""
    rpc_url: str = "http://localhost:8545"
    private_key: Optional[str] = None
    chain_id: Optional[int] = None
    network: str = "localhost"
    deployments_dir: str = "deployments"
    artifacts_dir: str = "artifacts"
    explorer_api_url: str = DEFAULT_EXPLORER_API_URL
    explorer_api_key: Optional[str] = None
    tx_timeout: int = 300
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        load_dotenv(env_file)
        chain_id = os.getenv("CHAIN_ID")
        return cls(
            rpc_url=os.getenv("RPC_URL", "http://localhost:8545"),
            private_key=os.getenv("PRIVATE_KEY"),
            chain_id=int(chain_id) if chain_id else None,
            network=os.getenv("NETWORK", "localhost"),
            deployments_dir=os.getenv("DEPLOYMENTS_DIR", "deployments"),
            artifacts_dir=os.getenv("ARTIFACTS_DIR", "artifacts"),
            explorer_api_url=os.getenv("EXPLORER_API_URL", DEFAULT_EXPLORER_API_URL),
            explorer_api_key=os.getenv("EXPLORER_API_KEY"),
            tx_timeout=int(os.getenv("TX_TIMEOUT", "300")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE"),
        )

    def require_private_key(self) -> str:
        if not self.private_key:
            raise PreconditionError("PRIVATE_KEY not found in environment")
        return self.private_key


def configure_logging(settings: Settings):
    """Configure root logging to stderr and, when LOG_FILE is set, to a file"""
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )
