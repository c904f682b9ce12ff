#!/usr/bin/env python3
"""
Coupon operator commands

Wraps coupons into ERC-20s, opens their order books and registers markets
with the deposit/borrow controllers. Every epoch-scoped command refuses to
act on an epoch that has already passed.

Usage:
    python -m scripts.coupon current-epoch
    python -m scripts.coupon deploy-wrapped-token --asset WETH --epoch 12
    python -m scripts.coupon open-clober-book --asset WETH --epoch 12
    python -m scripts.coupon create-clober-market --asset WETH --epoch 12
    python -m scripts.coupon migrate-market-register --asset WETH --epoch 12 --from 0x... --to 0x...
"""

import sys
import logging
import argparse
from typing import Any, Dict, Tuple

from web3.logs import DISCARD

from offchain.config import Settings
from offchain.constants import ZERO_ADDRESS, AddressRegistry
from offchain.deployments import DeploymentStore
from offchain.derivation import (
    book_unit_size,
    build_wrapper_metadata,
    derive_coupon_id,
    encode_fee_policy,
)
from offchain.errors import CouponOpsError, NotFoundError, PreconditionError

from .context import build_context

logger = logging.getLogger(__name__)

MAX_DEADLINE = 2 ** 64 - 1
MAKER_FEE_RATE = -1000  # 0.1% rebate
TAKER_FEE_RATE = 2000  # 0.2%

# createVolatileMarket parameters
MARKET_MAKER_FEE = 0
MARKET_TAKER_FEE = 400
MARKET_PRICE_A = 10 ** 10
MARKET_PRICE_R = 10 ** 15 * 1001


def coupon_key(token: str, epoch: int) -> Dict[str, Any]:
    return {'asset': token, 'epoch': epoch}


def build_book_keys(token: str, wrapped: str, decimals: int) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Order book keys for trading a wrapped coupon against its asset

    Returns:
        (sell key, buy key); the sell book quotes in the asset, the buy book
        quotes in the wrapped coupon
    """
    unit_size = book_unit_size(decimals)
    sell_key = {
        'base': wrapped,
        'unitSize': unit_size,
        'quote': token,
        'makerPolicy': encode_fee_policy(True, MAKER_FEE_RATE),
        'hooks': ZERO_ADDRESS,
        'takerPolicy': encode_fee_policy(True, TAKER_FEE_RATE),
    }
    buy_key = {
        'base': token,
        'unitSize': unit_size,
        'quote': wrapped,
        'makerPolicy': encode_fee_policy(False, MAKER_FEE_RATE),
        'hooks': ZERO_ADDRESS,
        'takerPolicy': encode_fee_policy(False, TAKER_FEE_RATE),
    }
    return sell_key, buy_key


class CouponTasks:
    """Operator commands against the deployed coupon contracts"""

    def __init__(self, chain, registry: AddressRegistry, store: DeploymentStore):
        self.chain = chain
        self.registry = registry
        self.store = store

    @property
    def coupon_manager(self):
        return self.chain.contract('ICouponManager', self.registry.role('COUPON_MANAGER'))

    @property
    def wrapped1155_factory(self):
        return self.chain.contract('IWrapped1155Factory', self.registry.role('WRAPPED1155_FACTORY'))

    def _controller(self, name: str):
        return self.chain.contract('ICouponController', self.store.require(name))

    def current_epoch(self) -> int:
        epoch = self.coupon_manager.functions.currentEpoch().call()
        logger.info(f"Current epoch: {epoch}")
        return epoch

    def _require_open_epoch(self, epoch: int):
        current = self.coupon_manager.functions.currentEpoch().call()
        if epoch < current:
            raise PreconditionError(f"Cannot act on past epoch {epoch} (current epoch is {current})")

    def token_info(self, token: str) -> Tuple[str, int]:
        erc20 = self.chain.contract('IERC20Metadata', token)
        return erc20.functions.symbol().call(), erc20.functions.decimals().call()

    def _wrapper_args(self, token: str, epoch: int, symbol: str, decimals: int) -> Tuple[str, int, bytes]:
        """(coupon manager, coupon id, metadata) as the Wrapped1155 factory expects them"""
        return (
            self.registry.role('COUPON_MANAGER'),
            derive_coupon_id(token, epoch),
            build_wrapper_metadata(symbol, epoch, decimals),
        )

    def wrapped_token_address(self, token: str, epoch: int, symbol: str, decimals: int) -> str:
        """Address the Wrapped1155 factory assigns to the (token, epoch) coupon"""
        return self.wrapped1155_factory.functions.getWrapped1155(
            *self._wrapper_args(token, epoch, symbol, decimals)).call()

    def deploy_wrapped_token(self, asset: str, epoch: int) -> str:
        self._require_open_epoch(epoch)
        token = self.registry.substitute(asset)
        symbol, decimals = self.token_info(token)
        computed_address = self.wrapped_token_address(token, epoch, symbol, decimals)

        if self.chain.has_code(computed_address):
            logger.info(f"Already deployed: {computed_address}")
            return computed_address

        receipt = self.chain.transact(self.wrapped1155_factory.functions.requireWrapped1155(
            *self._wrapper_args(token, epoch, symbol, decimals)))
        logger.info(f"Deployed {asset} for epoch {epoch} at {computed_address} "
                    f"at {receipt['transactionHash'].to_0x_hex()}")
        return computed_address

    def open_clober_book(self, asset: str, epoch: int):
        self._require_open_epoch(epoch)
        token = self.registry.substitute(asset)
        book_controller = self.chain.contract('IBookController', self.registry.role('CLOBERV2_CONTROLLER'))
        deposit_controller = self._controller('DepositControllerV2')
        borrow_controller = self._controller('BorrowControllerV2')

        symbol, decimals = self.token_info(token)
        wrapped = self.wrapped_token_address(token, epoch, symbol, decimals)
        sell_key, buy_key = build_book_keys(token, wrapped, decimals)

        receipt = self.chain.transact(book_controller.functions.open(
            [{'key': sell_key, 'hookData': b''}, {'key': buy_key, 'hookData': b''}],
            MAX_DEADLINE,
        ))
        logger.info(f"Opened Books for {asset}-{epoch} on tx {receipt['transactionHash'].to_0x_hex()}")

        key = coupon_key(token, epoch)
        receipt = self.chain.transact(deposit_controller.functions.setCouponBookKey(key, sell_key, buy_key))
        logger.info(f"Set deposit controller for {asset}-{epoch} on tx {receipt['transactionHash'].to_0x_hex()}")

        receipt = self.chain.transact(borrow_controller.functions.setCouponBookKey(key, sell_key, buy_key))
        logger.info(f"Set borrow controller for {asset}-{epoch} on tx {receipt['transactionHash'].to_0x_hex()}")
        return sell_key, buy_key

    def create_clober_market(self, asset: str, epoch: int) -> str:
        self._require_open_epoch(epoch)
        token = self.registry.substitute(asset)
        treasury = self.registry.role('TREASURY')
        market_factory = self.chain.contract('CloberMarketFactory', self.registry.role('CLOBER_FACTORY'))
        deposit_controller = self._controller('DepositController')
        borrow_controller = self._controller('BorrowController')

        symbol, decimals = self.token_info(token)
        wrapped = self.wrapped_token_address(token, epoch, symbol, decimals)
        quote_unit = 1 if decimals < 9 else 10 ** 9

        receipt = self.chain.transact(market_factory.functions.createVolatileMarket(
            treasury, token, wrapped, quote_unit,
            MARKET_MAKER_FEE, MARKET_TAKER_FEE, MARKET_PRICE_A, MARKET_PRICE_R,
        ))
        tx_hash = receipt['transactionHash'].to_0x_hex()
        events = market_factory.events.CreateVolatileMarket().process_receipt(receipt, errors=DISCARD)
        if not events:
            raise NotFoundError(f"No CreateVolatileMarket event in tx {tx_hash}")
        market = events[0]['args']['market']
        logger.info(f"Created market for {asset}-{epoch} at {market} on tx {tx_hash}")

        key = coupon_key(token, epoch)
        receipt = self.chain.transact(deposit_controller.functions.setCouponMarket(key, market))
        logger.info(f"Set deposit controller for {asset}-{epoch} to {market} "
                    f"on tx {receipt['transactionHash'].to_0x_hex()}")

        receipt = self.chain.transact(borrow_controller.functions.setCouponMarket(key, market))
        logger.info(f"Set borrow controller for {asset}-{epoch} to {market} "
                    f"on tx {receipt['transactionHash'].to_0x_hex()}")
        return market

    def migrate_market_register(self, asset: str, epoch: int, source: str, destination: str) -> str:
        self._require_open_epoch(epoch)
        token = self.registry.substitute(asset)
        source_controller = self.chain.contract('ICouponController', source)
        destination_controller = self.chain.contract('ICouponController', destination)

        key = coupon_key(token, epoch)
        market = source_controller.functions.getCouponMarket(key).call()
        if int(market, 16) == 0:
            raise NotFoundError(f"Cannot find market for {asset}-{epoch} on {source}")

        receipt = self.chain.transact(destination_controller.functions.setCouponMarket(key, market))
        logger.info(f"Migrated {asset}-{epoch}({market}) on tx {receipt['transactionHash'].to_0x_hex()}")
        return market


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Coupon operator commands")
    p.add_argument("--env", dest="env_file", default=None, help="Path to .env file to load")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("current-epoch", help="Print the current coupon epoch")

    for name, help_text in (
        ("deploy-wrapped-token", "Deploy the ERC-20 wrapper of a coupon"),
        ("open-clober-book", "Open the coupon order books and register them with the V2 controllers"),
        ("create-clober-market", "Create a coupon market and register it with the controllers"),
        ("migrate-market-register", "Copy a market registration between controllers"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--asset", required=True, help="the name of the asset")
        cmd.add_argument("--epoch", required=True, type=int, help="the epoch number")
        if name == "migrate-market-register":
            cmd.add_argument("--from", dest="source", required=True,
                             help="the address of the controller to migrate from")
            cmd.add_argument("--to", dest="destination", required=True,
                             help="the address of the controller to migrate to")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env(args.env_file)

    try:
        ctx = build_context(settings)
        tasks = CouponTasks(ctx.chain, ctx.registry, ctx.store)
        if args.cmd == "current-epoch":
            print(tasks.current_epoch())
        elif args.cmd == "deploy-wrapped-token":
            tasks.deploy_wrapped_token(args.asset, args.epoch)
        elif args.cmd == "open-clober-book":
            tasks.open_clober_book(args.asset, args.epoch)
        elif args.cmd == "create-clober-market":
            tasks.create_clober_market(args.asset, args.epoch)
        elif args.cmd == "migrate-market-register":
            tasks.migrate_market_register(args.asset, args.epoch, args.source, args.destination)
    except CouponOpsError as e:
        logger.error(f"{args.cmd} failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
