#!/usr/bin/env python3
"""
Generate role wallets for the SupplyChain ledger backend
"""
from eth_account import Account
import secrets

ROLES = ("manufacturer", "distributor", "retailer")

def generate_role_wallet():
    """Generate a new random wallet"""
    # Generate a random private key
    private_key = "0x" + secrets.token_hex(32)

    # Create account from private key
    account = Account.from_key(private_key)
    return account.address, private_key

def generate_role_wallets():
    """Generate one wallet per role and print the .env lines"""
    wallets = {role: generate_role_wallet() for role in ROLES}

    print("=== SupplyChain Role Wallets Generated ===")
    for role, (address, _) in wallets.items():
        print(f"{role.capitalize():<13} {address}")
    print()
    print("IMPORTANT:")
    print("1. These are TEST wallets - DO NOT use in production")
    print("2. The manufacturer wallet owns the ledger; losing it locks role administration")
    print()
    print("Update your .env file:")
    for role, (_, private_key) in wallets.items():
        print(f"{role.upper()}_PRIVATE_KEY={private_key}")

    return wallets

if __name__ == "__main__":
    generate_role_wallets()
