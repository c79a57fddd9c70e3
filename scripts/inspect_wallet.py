"""Diagnostic script: print raw Alchemy balances and metadata for a wallet."""

import os
import sys

from wallet_token_aggregator.core.identity import IdentityResolver
from wallet_token_aggregator.rpc.provider import AlchemyProvider

TARGET = "vitalik.eth"


def main(identity: str) -> int:
    api_key = os.getenv("ALCHEMY_API_KEY")
    if not api_key:
        print("ERROR: ALCHEMY_API_KEY environment variable not set")
        return 1

    with AlchemyProvider.from_api_key(api_key) as provider:
        address = IdentityResolver(provider).resolve(identity)
        print(f"\nWallet: {identity} -> {address}\n")

        entries = provider.get_token_balances(address)
        non_zero = [e for e in entries if e.raw_balance > 0]
        print(f"Provider reported {len(entries)} balances, {len(non_zero)} non-zero\n")

        for entry in non_zero:
            try:
                metadata = provider.get_token_metadata(entry.contract_address)
                label = f"{metadata.symbol:<12} decimals={metadata.decimals}"
            except Exception as e:
                label = f"metadata failed: {e}"
            print(f"  {entry.contract_address}  {entry.raw_balance:>32}  {label}")

    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1] if len(sys.argv) > 1 else TARGET))
