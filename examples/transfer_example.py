#!/usr/bin/env python3
"""
Example of sending USDC from a smart account with network configuration.
"""
import os

from smartaccount_sdk import (
    InsufficientPrefund,
    LocalSigner,
    NetworkConfig,
    OperationStatus,
    SmartAccountClient,
)
from smartaccount_sdk.utils import format_units, parse_units


def main():
    """
    Demonstrate a USDC transfer through the bundler.

    This example shows how to:
    1. Initialize the client from a network configuration
    2. Derive the smart account address and read its balance
    3. Transfer tokens, deploying the account on first use
    4. Handle the gas prefund shortfall of a fresh account
    """
    PRIVATE_KEY = os.environ.get("SMARTACCOUNT_PRIVATE_KEY")
    RECIPIENT = os.environ.get("RECIPIENT")
    NETWORK = os.environ.get("NETWORK", "polygon")

    if not PRIVATE_KEY or not RECIPIENT:
        print("ERROR: SMARTACCOUNT_PRIVATE_KEY and RECIPIENT environment variables are required")
        return

    print("Available networks:")
    for network_name in NetworkConfig.load_networks().keys():
        print(f"  - {network_name}")
    print()

    signer = LocalSigner(PRIVATE_KEY)
    client = SmartAccountClient.from_network(NETWORK, signer=signer)
    client.subscribe(lambda event, payload: print(f"  [{event}]"))

    account = client.get_account()
    profile = client.profile
    balance = client.get_asset_balance()
    print(f"Owner:         {account.owner}")
    print(f"Smart account: {account.address} ({account.status.value})")
    print(f"Balance:       {format_units(balance, profile.asset_decimals)} {profile.asset_symbol}")

    try:
        result = client.transfer(RECIPIENT, parse_units("0.01", profile.asset_decimals))
    except InsufficientPrefund as e:
        print(f"Send some {e.native_symbol} to {e.funding_address} for gas, then run again")
        return
    finally:
        client.close()

    if result.status == OperationStatus.CONFIRMED:
        print(f"Confirmed: {result.explorer_url or result.transaction_hash}")
    else:
        print(f"{result.status.value}: user operation {result.user_op_hash}")


if __name__ == "__main__":
    main()
