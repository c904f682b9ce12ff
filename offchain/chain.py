#!/usr/bin/env python3
"""
Web3 connection and transaction sending for the deployment scripts
"""

import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from hexbytes import HexBytes
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from .artifacts import load_abi, load_artifact
from .config import Settings
from .errors import TransactionFailedError, TransportError

logger = logging.getLogger(__name__)


class ChainClient:
    """Thin wrapper around Web3: contract handles, reads, signed writes"""

    def __init__(self, settings: Settings, w3: Optional[Web3] = None):
        self.settings = settings
        self.w3 = w3 if w3 is not None else self._initialize_web3(settings.rpc_url)
        self.account: Optional[Any] = None
        if settings.private_key:
            self.account = self.w3.eth.account.from_key(settings.private_key)
            logger.info(f"Using account: {self.account.address}")
        self._chain_id = settings.chain_id

    @staticmethod
    def _initialize_web3(rpc_url: str) -> Web3:
        w3 = Web3(Web3.HTTPProvider(rpc_url))
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        if not w3.is_connected():
            raise TransportError(f"Could not connect to RPC URL: {rpc_url}")
        logger.info(f"Connected to blockchain at {rpc_url}")
        return w3

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self.w3.eth.chain_id
        return self._chain_id

    def contract(self, abi_name: str, address: str):
        """Contract handle for address using the ABI registered under abi_name"""
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=load_abi(abi_name, self.settings.artifacts_dir),
        )

    def contract_factory(self, contract_name: str):
        """Deployable contract class built from the compiled hardhat artifact"""
        artifact = load_artifact(contract_name, self.settings.artifacts_dir)
        return self.w3.eth.contract(abi=artifact['abi'], bytecode=artifact['bytecode'])

    def get_code(self, address: str) -> bytes:
        return bytes(self.w3.eth.get_code(Web3.to_checksum_address(address)))

    def has_code(self, address: str) -> bool:
        return len(self.get_code(address)) > 0

    def _require_account(self):
        self.settings.require_private_key()
        return self.account

    def send(self, tx: Dict[str, Any]) -> HexBytes:
        """Sign and broadcast a transaction dict built by web3"""
        account = self._require_account()
        signed_tx = account.sign_transaction(tx)
        return self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)

    def wait(self, tx_hash: HexBytes) -> Dict[str, Any]:
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.settings.tx_timeout)
        if receipt['status'] != 1:
            raise TransactionFailedError(tx_hash.to_0x_hex())
        logger.info(f"Transaction {tx_hash.to_0x_hex()} confirmed in block {receipt['blockNumber']}")
        return receipt

    def transact(self, fn) -> Dict[str, Any]:
        """
        Build, sign and send a contract function call, then wait for its receipt

        Args:
            fn: Bound contract function, e.g. contract.functions.claim()

        Returns:
            The mined transaction receipt
        """
        account = self._require_account()
        tx = fn.build_transaction({
            'from': account.address,
            'nonce': self.w3.eth.get_transaction_count(account.address, 'pending'),
        })
        tx_hash = self.send(tx)
        logger.info(f"Transaction sent: {tx_hash.to_0x_hex()}")
        return self.wait(tx_hash)

    def deploy(self, contract_name: str, args: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
        """Deploy contract_name with constructor args, returns (address, receipt)"""
        factory = self.contract_factory(contract_name)
        receipt = self.transact(factory.constructor(*args))
        address = receipt['contractAddress']
        logger.info(f"Deployed {contract_name} at {address}")
        return address, receipt

    def encode_deploy_data(self, contract_name: str, args: Sequence[Any]) -> Tuple[str, str]:
        """
        Creation code plus ABI encoded constructor args

        Returns:
            (init code, constructor args) as 0x-prefixed hex strings
        """
        artifact = load_artifact(contract_name, self.settings.artifacts_dir)
        factory = self.w3.eth.contract(abi=artifact['abi'], bytecode=artifact['bytecode'])
        init_code = HexBytes(factory.constructor(*args).data_in_transaction)
        bytecode = HexBytes(artifact['bytecode'])
        return init_code.to_0x_hex(), init_code[len(bytecode):].to_0x_hex()
