#!/usr/bin/env python3
"""
Utility functions for the SupplyChain ledger backend
"""
from typing import Optional
from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

def is_valid_address(address: Optional[str]) -> bool:
    """
    Validate if a string is a usable Ethereum address.
    The zero address is rejected since it never identifies a participant.
    """
    if not address or not isinstance(address, str):
        return False

    if not Web3.is_address(address):
        return False

    # Mixed case carries an EIP-55 checksum, which must match
    digits = address[2:] if address[:2] in ("0x", "0X") else address
    if digits != digits.lower() and digits != digits.upper():
        if not Web3.is_checksum_address(address):
            return False

    return Web3.to_checksum_address(address) != ZERO_ADDRESS

def normalize_address(address: str) -> str:
    """
    Return the EIP-55 checksum form of an address.
    Raises ValueError for malformed or zero addresses.
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address!r}")

    return Web3.to_checksum_address(address)

def same_address(left: Optional[str], right: Optional[str]) -> bool:
    """Compare two addresses regardless of checksum casing"""
    if not left or not right:
        return False
    return left.lower() == right.lower()

def format_address_display(address: str) -> str:
    """
    Format an address for display
    """
    if not address:
        return "N/A"

    if is_valid_address(address):
        # Show first 6 and last 4 characters
        return f"{address[:6]}...{address[-4:]}"
    else:
        return f"Unknown: {address[:10]}"
