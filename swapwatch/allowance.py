"""ERC-20 allowance for the aggregation router.

The source token has to be approved for the router once before the first
swap. ``ensure_allowance`` checks the current allowance and only sends an
approval transaction when it does not cover the swap amount.
"""
from __future__ import annotations

import logging
from typing import Optional

from eth_account import Account
from eth_utils import to_checksum_address
from web3 import Web3

from .exceptions import SwapWatchException
from .networks import AGGREGATION_ROUTER_V6

MAX_UINT256 = 2**256 - 1

ERC20_ABI = [
    {
        "constant": False,
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "payable": False,
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    },
]


def connect(rpc_url: str) -> Web3:
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 10}))


def ensure_allowance(
    web3: Web3,
    token_address: str,
    private_key: str,
    amount: int,
    spender: str = AGGREGATION_ROUTER_V6,
    receipt_timeout: int = 120,
    logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """Approve ``spender`` for an unlimited amount if the allowance is below ``amount``.

    Returns the approval transaction hash, or None when no approval was needed.
    """
    logger = logger or logging.getLogger(__name__)
    owner = Account.from_key(private_key).address
    spender = to_checksum_address(spender)
    token = web3.eth.contract(address=to_checksum_address(token_address), abi=ERC20_ABI)

    current = token.functions.allowance(owner, spender).call()
    if int(current) >= int(amount):
        logger.info(f"Allowance for {token_address} already covers {amount} ({current})")
        return None

    logger.info(f"Approving {spender} to spend {token_address} for {owner}")
    tx = token.functions.approve(spender, MAX_UINT256).build_transaction({
        "from": owner,
        "nonce": web3.eth.get_transaction_count(owner),
    })
    signed_tx = web3.eth.account.sign_transaction(tx, private_key)
    tx_hash = web3.eth.send_raw_transaction(signed_tx.raw_transaction)
    receipt = web3.eth.wait_for_transaction_receipt(tx_hash, timeout=receipt_timeout)
    if receipt["status"] != 1:
        raise SwapWatchException(f"Approval transaction {tx_hash.hex()} reverted")
    logger.info(f"Approval confirmed in block {receipt['blockNumber']}: {tx_hash.hex()}")
    return tx_hash.hex()
