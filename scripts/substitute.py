#!/usr/bin/env python3
"""
Token substitute commands

Substitutes are deployed through the EIP-2470 singleton factory, so their
address is known before deployment. A substitute whose computed address
already holds bytecode is not deployed again; verification is attempted
either way.

Usage:
    python -m scripts.substitute aave-deploy --asset USDC
    python -m scripts.substitute simple-deploy --asset WBTC
    python -m scripts.substitute set-treasury --address 0x...
    python -m scripts.substitute claim --address 0x...
"""

import sys
import logging
import argparse
from typing import Any, List, Optional

from offchain.config import Settings
from offchain.constants import SINGLETON_FACTORY, AddressRegistry
from offchain.derivation import compute_create2_address
from offchain.errors import CouponOpsError

from .context import build_context
from .deploy import verify_quietly

logger = logging.getLogger(__name__)

ZERO_SALT = b"\x00" * 32


class SubstituteTasks:
    def __init__(self, chain, registry: AddressRegistry, verifier=None):
        self.chain = chain
        self.registry = registry
        self.verifier = verifier

    def aave_substitute_args(self, asset: str) -> List[Any]:
        return [
            self.registry.weth,
            self.registry.token(asset),
            self.registry.role('AAVE_V3_POOL'),
            self.registry.role('TREASURY'),
            self.registry.role('OWNER'),
        ]

    def simple_substitute_args(self, asset: str) -> List[Any]:
        return [
            self.registry.weth,
            self.registry.token(asset),
            self.registry.role('TREASURY'),
            self.registry.role('OWNER'),
        ]

    def deploy_deterministic(self, contract_name: str, args: List[Any], label: Optional[str] = None) -> str:
        """
        Deploy contract_name through the singleton factory unless its CREATE2
        address already holds code, then request explorer verification

        Returns:
            The CREATE2 address of the contract
        """
        label = label or contract_name
        init_code, constructor_args = self.chain.encode_deploy_data(contract_name, args)
        computed_address = compute_create2_address(SINGLETON_FACTORY, init_code, ZERO_SALT)

        if self.chain.has_code(computed_address):
            logger.info(f"{label} already deployed: {computed_address}")
        else:
            factory = self.chain.contract('ISingletonFactory', SINGLETON_FACTORY)
            receipt = self.chain.transact(factory.functions.deploy(init_code, ZERO_SALT))
            logger.info(f"Deployed {label}({computed_address}) at tx {receipt['transactionHash'].to_0x_hex()}")

        verify_quietly(self.verifier, computed_address, contract_name, constructor_args)
        return computed_address

    def deploy_aave_substitute(self, asset: str) -> str:
        args = self.aave_substitute_args(asset)
        return self.deploy_deterministic('AaveTokenSubstitute', args, f"{asset} AaveTokenSubstitute")

    def deploy_simple_substitute(self, asset: str) -> str:
        args = self.simple_substitute_args(asset)
        return self.deploy_deterministic('SimpleTokenSubstitute', args, f"{asset} SimpleTokenSubstitute")

    def set_treasury(self, address: str):
        treasury = self.registry.role('TREASURY')
        substitute = self.chain.contract('ISubstitute', address)
        receipt = self.chain.transact(substitute.functions.setTreasury(treasury))
        logger.info(f"Set treasury at tx {receipt['transactionHash'].to_0x_hex()}")

    def claim(self, address: str):
        substitute = self.chain.contract('ISubstitute', address)
        receipt = self.chain.transact(substitute.functions.claim())
        logger.info(f"Claimed at tx {receipt['transactionHash'].to_0x_hex()}")


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Token substitute commands")
    p.add_argument("--env", dest="env_file", default=None, help="Path to .env file to load")
    sub = p.add_subparsers(dest="cmd", required=True)

    for name in ("aave-deploy", "simple-deploy"):
        cmd = sub.add_parser(name, help=f"{name.split('-')[0].title()}TokenSubstitute deterministic deployment")
        cmd.add_argument("--asset", required=True, help="name of the asset")
    for name in ("set-treasury", "claim"):
        cmd = sub.add_parser(name)
        cmd.add_argument("--address", required=True, help="address of the substitute")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env(args.env_file)

    try:
        ctx = build_context(settings)
        tasks = SubstituteTasks(ctx.chain, ctx.registry, ctx.verifier)
        if args.cmd == "aave-deploy":
            tasks.deploy_aave_substitute(args.asset)
        elif args.cmd == "simple-deploy":
            tasks.deploy_simple_substitute(args.asset)
        elif args.cmd == "set-treasury":
            tasks.set_treasury(args.address)
        elif args.cmd == "claim":
            tasks.claim(args.address)
    except CouponOpsError as e:
        logger.error(f"{args.cmd} failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
