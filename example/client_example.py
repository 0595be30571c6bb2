from decimal import Decimal
import logging

from presale_client.chains.registry import ChainRegistry
from presale_client.hub import PresaleHub
from presale_client.providers.local import LocalWalletProvider

logging.basicConfig(level=logging.INFO)

wpk = "0xxxx"  # Replace with a funded test key, or set PRESALE_PRIVATE_KEY

registry = ChainRegistry.default()


async def main():
    provider = LocalWalletProvider(registry, private_key=wpk)
    async with PresaleHub(provider, registry) as hub:
        progress = await hub.progress()
        print(f"Sold {progress.sold} / {progress.target} ({progress.percent_of_target:.1f}%)")

        await hub.connect()
        await hub.select_chain(8453)
        hub.select_payment_token("USDT")

        quote = await hub.quote(Decimal(5000))
        print(f"5000 tokens cost {quote.payment_amount} {quote.payment_symbol} ({quote.tier.label})")

        await hub.approve(Decimal(5000))
        return await hub.buy(Decimal(5000))


if __name__ == "__main__":
    import asyncio
    result = asyncio.run(main())
    print("Transaction:", result.transaction.hash, result.transaction.status.value)
    if result.summary is not None:
        for tranche in result.summary.vesting_schedule():
            print(f"  {tranche.label}: {tranche.token_amount}")
