"""
Presale, ERC20 and ERC721 Contract ABI Module

This module provides the minimal ABI fragments the presale client calls:
ERC20 balance/allowance/approve, ERC721 holder checks for the discount NFT,
and the presale contract's purchase entry points, tokens-sold counter and
``TokensPurchased`` event.

Usage:
    from presale_client.evm.abis import (
        get_balance_abi,
        get_presale_abi,
        get_tokens_purchased_event_abi,
    )

    # Query balance
    balance_abi = get_balance_abi()

    # Encode a purchase
    presale_abi = get_presale_abi()
"""

from typing import Dict, Any, List


def get_balance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ``balanceOf(address)``.

    Shared by ERC20 and ERC721: both return a uint256 count for the owner.

    Returns:
        List[Dict[str, Any]]: ABI for balanceOf function
    """
    return [
        {
            "name": "balanceOf",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "account", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]


def get_allowance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 ``allowance(owner, spender)``.

    Returns:
        List[Dict[str, Any]]: ABI for ERC20 ``allowance`` function.
    """
    return [
        {
            "name": "allowance",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
            ],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]


def get_approve_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 ``approve(spender, amount)``.

    Returns:
        List[Dict[str, Any]]: ABI for ERC20 ``approve`` function.
    """
    return [
        {
            "name": "approve",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "spender", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        }
    ]


def get_owner_of_abi() -> List[Dict[str, Any]]:
    """ERC721 ``ownerOf(tokenId)``, used when a collection rejects ``balanceOf``."""
    return [
        {
            "name": "ownerOf",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "tokenId", "type": "uint256"}],
            "outputs": [{"name": "", "type": "address"}],
        }
    ]


def get_tokens_purchased_event_abi() -> Dict[str, Any]:
    """
    Get ABI for the presale ``TokensPurchased`` event.

    Only ``buyer`` is indexed, so the log data holds five words in order:
    amount, costETH, costUSD, phase, isGenesis.

    Returns:
        Dict[str, Any]: Event ABI entry.
    """
    return {
        "name": "TokensPurchased",
        "type": "event",
        "anonymous": False,
        "inputs": [
            {"name": "buyer", "type": "address", "indexed": True},
            {"name": "amount", "type": "uint256", "indexed": False},
            {"name": "costETH", "type": "uint256", "indexed": False},
            {"name": "costUSD", "type": "uint256", "indexed": False},
            {"name": "phase", "type": "uint8", "indexed": False},
            {"name": "isGenesis", "type": "bool", "indexed": False},
        ],
    }


def get_presale_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the presale contract.

    Functions:
        - buyTokens(uint256 amount): payable, native-asset purchase
        - buyTokensWithUSDT(uint256 amount): stablecoin purchase pulled via allowance
        - tokensSold(): aggregate tokens sold (18 decimals)

    Returns:
        List[Dict[str, Any]]: ABI for the presale contract.
    """
    return [
        {
            "name": "buyTokens",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [{"name": "amount", "type": "uint256"}],
            "outputs": [],
        },
        {
            "name": "buyTokensWithUSDT",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [{"name": "amount", "type": "uint256"}],
            "outputs": [],
        },
        {
            "name": "tokensSold",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint256"}],
        },
        get_tokens_purchased_event_abi(),
    ]
