#!/usr/bin/env python3
"""
Block explorer source verification (Etherscan compatible API)
"""

import json
import time
import logging
from typing import Any, Dict, Optional

import requests

from .artifacts import find_artifact, load_build_info
from .errors import NotFoundError, VerificationError

logger = logging.getLogger(__name__)

ALREADY_VERIFIED = "already verified"
PENDING = "pending in queue"


class ExplorerVerifier:
    def __init__(self, api_url: str, api_key: Optional[str], chain_id: int,
                 artifacts_dir: str = "artifacts", poll_interval: float = 5.0,
                 max_polls: int = 12, session: Optional[requests.Session] = None):
        self.api_url = api_url
        self.api_key = api_key
        self.chain_id = chain_id
        self.artifacts_dir = artifacts_dir
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.session = session or requests.Session()

    def _request(self, method: str, params: Dict[str, Any], data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = {'chainid': self.chain_id, 'apikey': self.api_key, **params}
        response = self.session.request(method, self.api_url, params=query, data=data, timeout=30)
        response.raise_for_status()
        return response.json()

    def _fully_qualified_name(self, contract_name: str, build_info: Dict[str, Any]) -> str:
        with open(find_artifact(contract_name, self.artifacts_dir), 'r') as f:
            source_name = json.load(f).get('sourceName')
        if not source_name:
            sources = build_info['input'].get('sources', {})
            source_name = next((s for s in sources if s.endswith(f'/{contract_name}.sol')), f'contracts/{contract_name}.sol')
        return f"{source_name}:{contract_name}"

    def verify(self, address: str, contract_name: str, constructor_args: str = "0x") -> bool:
        """
        Submit source code for address and wait for the explorer verdict

        Args:
            address: Deployed contract address
            contract_name: Name of the compiled hardhat artifact
            constructor_args: ABI encoded constructor arguments as hex

        Returns:
            True once the explorer reports the contract verified

        Raises:
            VerificationError: on any rejection, timeout or missing build info
        """
        if not self.api_key:
            raise VerificationError("EXPLORER_API_KEY not configured")
        try:
            build_info = load_build_info(contract_name, self.artifacts_dir)
            payload = {
                'module': 'contract',
                'action': 'verifysourcecode',
                'contractaddress': address,
                'sourceCode': json.dumps(build_info['input']),
                'codeformat': 'solidity-standard-json-input',
                'contractname': self._fully_qualified_name(contract_name, build_info),
                'compilerversion': f"v{build_info['solcLongVersion']}",
                'constructorArguements': constructor_args[2:] if constructor_args.startswith('0x') else constructor_args,
            }
        except NotFoundError as e:
            raise VerificationError(str(e)) from e
        except (KeyError, OSError, json.JSONDecodeError) as e:
            raise VerificationError(f"Malformed build artifacts for {contract_name}: {e!r}") from e
        try:
            result = self._request('POST', {}, data=payload)
        except requests.RequestException as e:
            raise VerificationError(f"Verification request for {address} failed: {e}") from e

        message = str(result.get('result', ''))
        if result.get('status') != '1':
            if ALREADY_VERIFIED in message.lower():
                logger.info(f"{contract_name} at {address} is already verified")
                return True
            raise VerificationError(f"Explorer rejected {contract_name} at {address}: {message}")

        return self._wait_for_verdict(message, contract_name, address)

    def _wait_for_verdict(self, guid: str, contract_name: str, address: str) -> bool:
        for _ in range(self.max_polls):
            time.sleep(self.poll_interval)
            try:
                result = self._request('GET', {'module': 'contract', 'action': 'checkverifystatus', 'guid': guid})
            except requests.RequestException as e:
                raise VerificationError(f"Verification status check for {address} failed: {e}") from e
            message = str(result.get('result', ''))
            if PENDING in message.lower():
                continue
            if result.get('status') == '1' or ALREADY_VERIFIED in message.lower():
                logger.info(f"Verified {contract_name} at {address}")
                return True
            raise VerificationError(f"Verification of {contract_name} at {address} failed: {message}")
        raise VerificationError(f"Verification of {contract_name} at {address} still pending after {self.max_polls} polls")
