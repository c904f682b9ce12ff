#!/usr/bin/env python3
"""
Idempotent deploy-and-verify for the Coupon Finance controllers and adapters

Each contract is deployed at most once per network: an existing deployment
record means the contract is skipped entirely (no redeploy, no re-verify).
Explorer verification after a fresh deployment is best effort.

Usage:
    python -m scripts.deploy                      # everything
    python -m scripts.deploy SimpleBondController # one contract and its dependencies
"""

import sys
import logging
import argparse
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from offchain.config import Settings
from offchain.constants import TOKEN_KEYS, AddressRegistry
from offchain.deployments import DeploymentStore
from offchain.errors import CouponOpsError, VerificationError

from .context import build_context

logger = logging.getLogger(__name__)

ALREADY_DEPLOYED = 'already-deployed'
SKIPPED_DEPRECATED = 'deprecated'
DEPLOYED = 'deployed'
VERIFIED = 'verified'
VERIFICATION_FAILED = 'verification-failed'

ArgsBuilder = Callable[[AddressRegistry, DeploymentStore], List[Any]]


@dataclass(frozen=True)
class ContractDeployment:
    """How to deploy one named contract"""
    name: str
    args: ArgsBuilder
    dependencies: Tuple[str, ...] = ()
    deprecated: bool = False


def _roles(*names: str) -> ArgsBuilder:
    def build(registry: AddressRegistry, store: DeploymentStore) -> List[Any]:
        return [registry.weth if name == TOKEN_KEYS['WETH'] else registry.role(name) for name in names]
    return build


def _coupon_market_router_args(registry: AddressRegistry, store: DeploymentStore) -> List[Any]:
    return [
        registry.role('WRAPPED1155_FACTORY'),
        registry.role('CLOBER_FACTORY'),
        registry.role('COUPON_MANAGER'),
        store.require('CouponWrapper'),
    ]


def _simple_bond_controller_args(registry: AddressRegistry, store: DeploymentStore) -> List[Any]:
    return [
        registry.weth,
        registry.role('BOND_POSITION_MANAGER'),
        registry.role('COUPON_MANAGER'),
        store.require('CouponWrapper'),
        registry.role('OWNER'),
    ]


CONTRACT_DEPLOYMENTS: Dict[str, ContractDeployment] = {
    d.name: d for d in (
        ContractDeployment(
            'CouponWrapper',
            _roles('COUPON_MANAGER', 'WRAPPED1155_FACTORY'),
        ),
        ContractDeployment(
            'DepositController',
            _roles('WRAPPED1155_FACTORY', 'CLOBER_FACTORY', 'COUPON_MANAGER', 'WETH', 'BOND_POSITION_MANAGER'),
        ),
        ContractDeployment(
            'DepositControllerV2',
            _roles('WRAPPED1155_FACTORY', 'CLOBERV2_CONTROLLER', 'CLOBERV2_BOOK_MANAGER',
                   'COUPON_MANAGER', 'WETH', 'BOND_POSITION_MANAGER'),
        ),
        ContractDeployment(
            'BorrowController',
            _roles('WRAPPED1155_FACTORY', 'CLOBER_FACTORY', 'COUPON_MANAGER', 'WETH',
                   'LOAN_POSITION_MANAGER', 'ROUTER'),
            deprecated=True,
        ),
        ContractDeployment(
            'BorrowControllerV2',
            _roles('WRAPPED1155_FACTORY', 'CLOBERV2_CONTROLLER', 'CLOBERV2_BOOK_MANAGER',
                   'COUPON_MANAGER', 'WETH', 'LOAN_POSITION_MANAGER', 'ROUTER'),
        ),
        ContractDeployment(
            'CouponLiquidator',
            _roles('LOAN_POSITION_MANAGER', 'LIQUIDATOR_ROUTER', 'WETH'),
        ),
        ContractDeployment(
            'CouponMarketRouter',
            _coupon_market_router_args,
            dependencies=('CouponWrapper',),
            deprecated=True,
        ),
        ContractDeployment(
            'EthSubstituteMinter',
            _roles('WETH'),
        ),
        ContractDeployment(
            'LeverageAdapter',
            _roles('WRAPPED1155_FACTORY', 'CLOBER_FACTORY', 'COUPON_MANAGER', 'WETH',
                   'LOAN_POSITION_MANAGER', 'LEVERAGE_ROUTER'),
        ),
        ContractDeployment(
            'RepayAdapter',
            _roles('WRAPPED1155_FACTORY', 'CLOBER_FACTORY', 'COUPON_MANAGER', 'WETH',
                   'LOAN_POSITION_MANAGER', 'REPAY_ROUTER'),
        ),
        ContractDeployment(
            'SimpleBondController',
            _simple_bond_controller_args,
            dependencies=('CouponWrapper',),
        ),
    )
}


def verify_quietly(verifier, address: str, contract_name: str, constructor_args: str) -> bool:
    """Run explorer verification, logging and swallowing any VerificationError"""
    if verifier is None:
        return False
    try:
        return verifier.verify(address, contract_name, constructor_args)
    except VerificationError as e:
        logger.warning(f"Verification of {contract_name} at {address} failed: {e}")
        return False


class DeploymentOrchestrator:
    def __init__(self, chain, registry: AddressRegistry, store: DeploymentStore, verifier=None,
                 deployments: Optional[Dict[str, ContractDeployment]] = None):
        self.chain = chain
        self.registry = registry
        self.store = store
        self.verifier = verifier
        self.deployments = deployments if deployments is not None else CONTRACT_DEPLOYMENTS

    def deploy_with_verify(self, name: str, args: Sequence[Any]) -> str:
        """Deploy name, record it, then attempt verification; returns the final status"""
        address, receipt = self.chain.deploy(name, args)
        abi = self.chain.contract_factory(name).abi
        self.store.save(name, address, args, abi=abi, receipt=receipt)

        if self.verifier is None:
            return DEPLOYED
        _, constructor_args = self.chain.encode_deploy_data(name, args)
        if verify_quietly(self.verifier, address, name, constructor_args):
            return VERIFIED
        return VERIFICATION_FAILED

    def ensure_deployed(self, name: str, _resolving: Optional[set] = None) -> str:
        """
        Deploy name (and its dependencies first) unless it is already recorded

        Returns:
            One of the status constants of this module
        """
        try:
            deployment = self.deployments[name]
        except KeyError:
            raise CouponOpsError(f"Unknown contract: {name}") from None

        if deployment.deprecated:
            logger.info(f"{name} is deprecated, skipping")
            return SKIPPED_DEPRECATED

        existing = self.store.get(name)
        if existing is not None:
            logger.info(f"{name} already deployed at {existing}")
            return ALREADY_DEPLOYED

        resolving = _resolving if _resolving is not None else set()
        if name in resolving:
            raise CouponOpsError(f"Circular deployment dependency on {name}")
        resolving.add(name)
        for dependency in deployment.dependencies:
            self.ensure_deployed(dependency, resolving)

        args = deployment.args(self.registry, self.store)
        logger.info(f"Deploying {name} with args {args}")
        return self.deploy_with_verify(name, args)

    def run(self, names: Optional[Sequence[str]] = None) -> Dict[str, str]:
        results: Dict[str, str] = {}
        for name in names or list(self.deployments):
            results[name] = self.ensure_deployed(name)
        return results


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Deploy Coupon Finance contracts")
    p.add_argument("contracts", nargs="*", metavar="CONTRACT",
                   help=f"Contracts to deploy (default: all): {', '.join(CONTRACT_DEPLOYMENTS)}")
    p.add_argument("--env", dest="env_file", default=None, help="Path to .env file to load")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env(args.env_file)

    try:
        ctx = build_context(settings)
        orchestrator = DeploymentOrchestrator(ctx.chain, ctx.registry, ctx.store, ctx.verifier)
        results = orchestrator.run(args.contracts)
    except CouponOpsError as e:
        logger.error(f"Deployment failed: {e}")
        return 1

    for name, status in results.items():
        logger.info(f"{name}: {status}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
