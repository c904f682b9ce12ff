#!/usr/bin/env python3
"""
Deployment record store

Records live in <deployments_dir>/<network>/<ContractName>.json using the
hardhat-deploy layout, so deployments made by either tool are visible to both.
"""

import os
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from .errors import NotFoundError

logger = logging.getLogger(__name__)


class DeploymentStore:
    def __init__(self, deployments_dir: str, network: str):
        self.network = network
        self.directory = os.path.join(deployments_dir, network)

    def _path(self, name: str) -> str:
        return os.path.join(self.directory, f'{name}.json')

    def get_record(self, name: str) -> Optional[Dict[str, Any]]:
        path = self._path(name)
        if not os.path.exists(path):
            return None
        with open(path, 'r') as f:
            return json.load(f)

    def get(self, name: str) -> Optional[str]:
        """Deployed address of name, or None if it was never recorded"""
        record = self.get_record(name)
        return record['address'] if record else None

    def require(self, name: str) -> str:
        address = self.get(name)
        if address is None:
            raise NotFoundError(f"No deployment recorded for {name} on {self.network}")
        return address

    def save(self, name: str, address: str, args: Sequence[Any],
             abi: Optional[List[Dict[str, Any]]] = None,
             receipt: Optional[Dict[str, Any]] = None):
        record: Dict[str, Any] = {
            'address': address,
            'abi': abi or [],
            'args': list(args),
        }
        if receipt is not None:
            tx_hash = receipt.get('transactionHash')
            record['transactionHash'] = tx_hash.to_0x_hex() if hasattr(tx_hash, 'to_0x_hex') else tx_hash
            record['receipt'] = {'blockNumber': receipt.get('blockNumber')}
        os.makedirs(self.directory, exist_ok=True)
        with open(self._path(name), 'w') as f:
            json.dump(record, f, indent=2)
        logger.info(f"Recorded {name} at {address} in {self._path(name)}")
