#!/usr/bin/env python3
"""
Tests for the coupon operator commands
All chain access goes through a MagicMock chain client; no node is needed.
"""

from unittest.mock import MagicMock, patch

import pytest
from hexbytes import HexBytes

from offchain.constants import ZERO_ADDRESS, AddressRegistry
from offchain.deployments import DeploymentStore
from offchain.derivation import build_wrapper_metadata, derive_coupon_id, encode_fee_policy
from offchain.errors import NotFoundError, PreconditionError
from scripts.context import OpsContext
from scripts.coupon import MAX_DEADLINE, CouponTasks, build_book_keys, main

SUBSTITUTE = "0xAb6c37355D6C06fcF73Ab0E049d9Cf922f297573"
WRAPPED = "0x00000000000000000000000000000000000000c1"
MARKET = "0x00000000000000000000000000000000000000d1"
SOURCE = "0x00000000000000000000000000000000000000e1"
DESTINATION = "0x00000000000000000000000000000000000000e2"

ROLES = {
    'COUPON_MANAGER': "0x0000000000000000000000000000000000000a01",
    'WRAPPED1155_FACTORY': "0x0000000000000000000000000000000000000a02",
    'CLOBER_FACTORY': "0x0000000000000000000000000000000000000a03",
    'CLOBERV2_CONTROLLER': "0x0000000000000000000000000000000000000a04",
    'TREASURY': "0x0000000000000000000000000000000000000a05",
}
CONTROLLERS = {
    'DepositController': "0x0000000000000000000000000000000000000b01",
    'BorrowController': "0x0000000000000000000000000000000000000b02",
    'DepositControllerV2': "0x0000000000000000000000000000000000000b03",
    'BorrowControllerV2': "0x0000000000000000000000000000000000000b04",
}


class FakeChain:
    """Chain client double that hands out one MagicMock per (abi, address)"""

    def __init__(self, current_epoch: int = 10, decimals: int = 18, symbol: str = "WETH"):
        self.contracts = {}
        self.transact = MagicMock(side_effect=self._receipt)
        self.has_code = MagicMock(return_value=False)

        self.at('ICouponManager', ROLES['COUPON_MANAGER']).functions.currentEpoch.return_value.call.return_value = current_epoch
        token = self.at('IERC20Metadata', SUBSTITUTE)
        token.functions.symbol.return_value.call.return_value = symbol
        token.functions.decimals.return_value.call.return_value = decimals
        factory = self.at('IWrapped1155Factory', ROLES['WRAPPED1155_FACTORY'])
        factory.functions.getWrapped1155.return_value.call.return_value = WRAPPED

    @staticmethod
    def _receipt(fn):
        return {'status': 1, 'transactionHash': HexBytes("0x" + "ab" * 32), 'blockNumber': 1, 'logs': []}

    def at(self, abi_name, address):
        return self.contracts.setdefault((abi_name, address), MagicMock(name=f"{abi_name}@{address}"))

    def contract(self, abi_name, address):
        return self.at(abi_name, address)


class TestCouponTasks:
    @pytest.fixture(autouse=True)
    def _setup(self, tmp_path):
        self.registry = AddressRegistry(42161, ROLES, {}, {'WETH': SUBSTITUTE})
        self.store = DeploymentStore(str(tmp_path), 'arbitrum')
        for name, address in CONTROLLERS.items():
            self.store.save(name, address, [])
        self.chain = FakeChain()
        self.tasks = CouponTasks(self.chain, self.registry, self.store)

    def controller(self, name):
        return self.chain.at('ICouponController', CONTROLLERS[name])

    def test_current_epoch(self):
        assert self.tasks.current_epoch() == 10

    def test_deploy_wrapped_token(self):
        metadata = build_wrapper_metadata("WETH", 12, 18)
        coupon_id = derive_coupon_id(SUBSTITUTE, 12)

        assert self.tasks.deploy_wrapped_token('WETH', 12) == WRAPPED

        factory = self.chain.at('IWrapped1155Factory', ROLES['WRAPPED1155_FACTORY'])
        factory.functions.getWrapped1155.assert_called_once_with(ROLES['COUPON_MANAGER'], coupon_id, metadata)
        factory.functions.requireWrapped1155.assert_called_once_with(ROLES['COUPON_MANAGER'], coupon_id, metadata)
        self.chain.has_code.assert_called_once_with(WRAPPED)
        assert self.chain.transact.call_count == 1

    def test_deploy_wrapped_token_already_on_chain(self):
        """Bytecode at the computed address means nothing is sent"""
        self.chain.has_code.return_value = True
        assert self.tasks.deploy_wrapped_token('WETH', 12) == WRAPPED
        self.chain.transact.assert_not_called()

    def test_current_epoch_is_allowed(self):
        self.tasks.deploy_wrapped_token('WETH', 10)
        assert self.chain.transact.call_count == 1

    @pytest.mark.parametrize("command, extra", [
        ('deploy_wrapped_token', ()),
        ('open_clober_book', ()),
        ('create_clober_market', ()),
        ('migrate_market_register', (SOURCE, DESTINATION)),
    ])
    def test_past_epoch_rejected_before_any_write(self, command, extra):
        with pytest.raises(PreconditionError):
            getattr(self.tasks, command)('WETH', 9, *extra)
        self.chain.transact.assert_not_called()
        self.chain.has_code.assert_not_called()

    def test_unknown_asset(self):
        with pytest.raises(PreconditionError):
            self.tasks.deploy_wrapped_token('SHIB', 12)
        self.chain.transact.assert_not_called()

    def test_open_clober_book(self):
        sell_key, buy_key = self.tasks.open_clober_book('WETH', 12)

        assert sell_key['base'] == WRAPPED and sell_key['quote'] == SUBSTITUTE
        assert buy_key['base'] == SUBSTITUTE and buy_key['quote'] == WRAPPED
        book_controller = self.chain.at('IBookController', ROLES['CLOBERV2_CONTROLLER'])
        book_controller.functions.open.assert_called_once_with(
            [{'key': sell_key, 'hookData': b''}, {'key': buy_key, 'hookData': b''}], MAX_DEADLINE)

        key = {'asset': SUBSTITUTE, 'epoch': 12}
        self.controller('DepositControllerV2').functions.setCouponBookKey.assert_called_once_with(key, sell_key, buy_key)
        self.controller('BorrowControllerV2').functions.setCouponBookKey.assert_called_once_with(key, sell_key, buy_key)

        # open, deposit registration, borrow registration; each awaited in order
        sent = [c[0][0] for c in self.chain.transact.call_args_list]
        assert sent == [
            book_controller.functions.open.return_value,
            self.controller('DepositControllerV2').functions.setCouponBookKey.return_value,
            self.controller('BorrowControllerV2').functions.setCouponBookKey.return_value,
        ]

    def test_open_clober_book_needs_v2_controllers(self):
        self.store = DeploymentStore(str(self.store.directory) + "-empty", 'arbitrum')
        tasks = CouponTasks(self.chain, self.registry, self.store)
        with pytest.raises(NotFoundError):
            tasks.open_clober_book('WETH', 12)
        self.chain.transact.assert_not_called()

    def test_token_metadata_read_once(self):
        token = self.chain.at('IERC20Metadata', SUBSTITUTE)
        self.tasks.open_clober_book('WETH', 12)
        assert token.functions.symbol.call_count == 1
        assert token.functions.decimals.call_count == 1

    def test_build_book_keys(self):
        sell_key, buy_key = build_book_keys(SUBSTITUTE, WRAPPED, 6)
        assert sell_key['unitSize'] == buy_key['unitSize'] == 1
        assert sell_key['makerPolicy'] == encode_fee_policy(True, -1000)
        assert sell_key['takerPolicy'] == encode_fee_policy(True, 2000)
        assert buy_key['makerPolicy'] == encode_fee_policy(False, -1000)
        assert buy_key['takerPolicy'] == encode_fee_policy(False, 2000)
        assert sell_key['hooks'] == buy_key['hooks'] == ZERO_ADDRESS
        assert build_book_keys(SUBSTITUTE, WRAPPED, 18)[0]['unitSize'] == 10 ** 12

    def test_create_clober_market(self):
        market_factory = self.chain.at('CloberMarketFactory', ROLES['CLOBER_FACTORY'])
        events = market_factory.events.CreateVolatileMarket.return_value
        events.process_receipt.return_value = [{'event': 'CreateVolatileMarket', 'args': {'market': MARKET}}]

        assert self.tasks.create_clober_market('WETH', 12) == MARKET

        market_factory.functions.createVolatileMarket.assert_called_once_with(
            ROLES['TREASURY'], SUBSTITUTE, WRAPPED, 10 ** 9, 0, 400, 10 ** 10, 10 ** 15 * 1001)
        key = {'asset': SUBSTITUTE, 'epoch': 12}
        self.controller('DepositController').functions.setCouponMarket.assert_called_once_with(key, MARKET)
        self.controller('BorrowController').functions.setCouponMarket.assert_called_once_with(key, MARKET)
        assert self.chain.transact.call_count == 3

    def test_create_clober_market_low_decimals(self):
        self.chain = FakeChain(decimals=6, symbol="USDC")
        tasks = CouponTasks(self.chain, self.registry, self.store)
        market_factory = self.chain.at('CloberMarketFactory', ROLES['CLOBER_FACTORY'])
        market_factory.events.CreateVolatileMarket.return_value.process_receipt.return_value = [
            {'args': {'market': MARKET}}]

        tasks.create_clober_market('WETH', 12)

        assert market_factory.functions.createVolatileMarket.call_args[0][3] == 1

    def test_create_clober_market_without_event(self):
        """No CreateVolatileMarket log is fatal and nothing gets registered"""
        market_factory = self.chain.at('CloberMarketFactory', ROLES['CLOBER_FACTORY'])
        market_factory.events.CreateVolatileMarket.return_value.process_receipt.return_value = []

        with pytest.raises(NotFoundError):
            self.tasks.create_clober_market('WETH', 12)

        assert self.chain.transact.call_count == 1
        self.controller('DepositController').functions.setCouponMarket.assert_not_called()
        self.controller('BorrowController').functions.setCouponMarket.assert_not_called()

    def test_migrate_market_register(self):
        key = {'asset': SUBSTITUTE, 'epoch': 12}
        source = self.chain.at('ICouponController', SOURCE)
        source.functions.getCouponMarket.return_value.call.return_value = MARKET

        assert self.tasks.migrate_market_register('WETH', 12, SOURCE, DESTINATION) == MARKET

        source.functions.getCouponMarket.assert_called_once_with(key)
        destination = self.chain.at('ICouponController', DESTINATION)
        destination.functions.setCouponMarket.assert_called_once_with(key, MARKET)
        self.chain.transact.assert_called_once_with(destination.functions.setCouponMarket.return_value)

    def test_migrate_without_source_market(self):
        """An unregistered source market fails and the destination is never written"""
        source = self.chain.at('ICouponController', SOURCE)
        source.functions.getCouponMarket.return_value.call.return_value = ZERO_ADDRESS

        with pytest.raises(NotFoundError):
            self.tasks.migrate_market_register('WETH', 12, SOURCE, DESTINATION)

        destination = self.chain.at('ICouponController', DESTINATION)
        destination.functions.setCouponMarket.assert_not_called()
        self.chain.transact.assert_not_called()


class TestCouponMain:
    @pytest.fixture(autouse=True)
    def _context(self, tmp_path):
        store = DeploymentStore(str(tmp_path), 'arbitrum')
        for name, address in CONTROLLERS.items():
            store.save(name, address, [])
        self.chain = FakeChain()
        registry = AddressRegistry(42161, ROLES, {}, {'WETH': SUBSTITUTE})
        ctx = OpsContext(settings=MagicMock(), chain=self.chain, registry=registry, store=store)
        with patch('scripts.coupon.Settings'), patch('scripts.coupon.build_context', return_value=ctx):
            yield

    def test_current_epoch(self, capsys):
        assert main(['current-epoch']) == 0
        assert capsys.readouterr().out.strip() == "10"

    def test_deploy_wrapped_token(self):
        assert main(['deploy-wrapped-token', '--asset', 'WETH', '--epoch', '12']) == 0
        assert self.chain.transact.call_count == 1

    def test_past_epoch_exits_with_error(self):
        """The command fails with status 1 and nothing is sent"""
        assert main(['deploy-wrapped-token', '--asset', 'WETH', '--epoch', '9']) == 1
        self.chain.transact.assert_not_called()

    def test_migrate_market_register(self):
        source = self.chain.at('ICouponController', SOURCE)
        source.functions.getCouponMarket.return_value.call.return_value = MARKET

        assert main(['migrate-market-register', '--asset', 'WETH', '--epoch', '12',
                     '--from', SOURCE, '--to', DESTINATION]) == 0

        destination = self.chain.at('ICouponController', DESTINATION)
        destination.functions.setCouponMarket.assert_called_once_with({'asset': SUBSTITUTE, 'epoch': 12}, MARKET)

    def test_missing_source_market_exits_with_error(self):
        source = self.chain.at('ICouponController', SOURCE)
        source.functions.getCouponMarket.return_value.call.return_value = ZERO_ADDRESS

        assert main(['migrate-market-register', '--asset', 'WETH', '--epoch', '12',
                     '--from', SOURCE, '--to', DESTINATION]) == 1
        self.chain.transact.assert_not_called()

    def test_epoch_must_be_an_integer(self):
        with pytest.raises(SystemExit):
            main(['deploy-wrapped-token', '--asset', 'WETH', '--epoch', 'twelve'])


if __name__ == "__main__":
    pytest.main([__file__])
