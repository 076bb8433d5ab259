"""Tests for ERC-20 router approval."""
from unittest.mock import MagicMock

import pytest
from eth_account import Account

from swapwatch.allowance import MAX_UINT256, ensure_allowance
from swapwatch.exceptions import SwapWatchException
from swapwatch.networks import AGGREGATION_ROUTER_V6

PRIVATE_KEY = "0x" + "4c" * 32
OWNER = Account.from_key(PRIVATE_KEY).address
TOKEN = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def make_web3(current_allowance, receipt_status=1):
    web3 = MagicMock()
    contract = web3.eth.contract.return_value
    contract.functions.allowance.return_value.call.return_value = current_allowance
    contract.functions.approve.return_value.build_transaction.return_value = {"to": TOKEN}
    web3.eth.get_transaction_count.return_value = 7
    web3.eth.send_raw_transaction.return_value = bytes.fromhex("ab" * 32)
    web3.eth.wait_for_transaction_receipt.return_value = {"status": receipt_status, "blockNumber": 100}
    return web3, contract


def test_sufficient_allowance_sends_nothing():
    web3, contract = make_web3(current_allowance=10**6)

    assert ensure_allowance(web3, TOKEN, PRIVATE_KEY, 100000) is None

    contract.functions.approve.assert_not_called()
    web3.eth.send_raw_transaction.assert_not_called()


def test_low_allowance_approves_router():
    web3, contract = make_web3(current_allowance=0)

    tx_hash = ensure_allowance(web3, TOKEN, PRIVATE_KEY, 100000)

    assert tx_hash == "ab" * 32
    spender, amount = contract.functions.approve.call_args[0]
    assert spender.lower() == AGGREGATION_ROUTER_V6
    assert amount == MAX_UINT256
    tx_params = contract.functions.approve.return_value.build_transaction.call_args[0][0]
    assert tx_params == {"from": OWNER, "nonce": 7}
    web3.eth.account.sign_transaction.assert_called_once_with({"to": TOKEN}, PRIVATE_KEY)


def test_reverted_approval_raises():
    web3, _ = make_web3(current_allowance=0, receipt_status=0)

    with pytest.raises(SwapWatchException):
        ensure_allowance(web3, TOKEN, PRIVATE_KEY, 100000)
