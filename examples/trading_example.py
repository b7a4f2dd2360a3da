#!/usr/bin/env python3
"""
Demonstration of signed trading and streaming with the Pacifica Python SDK

Set PACIFICA_PRIVATE_KEY to run the signed parts; without it only public
market data is fetched.
"""

import asyncio
import logging
import os

from pacifica_sdk import (
    EventType,
    PacificaConfig,
    PacificaError,
    PacificaSDK,
    sign_request,
    verify_envelope,
)


def demo_offline_signing(private_key: str):
    """Sign an order without touching the network"""
    print("=== Offline Signing Demo ===")

    envelope = sign_request(
        "create_order",
        {"symbol": "BTC", "side": "bid", "amount": "0.01", "price": "50000", "tif": "GTC"},
        private_key,
    )
    print(f"   Account:   {envelope.account}")
    print(f"   Signed:    {envelope.canonical_message}")
    print(f"   Signature: {envelope.signature[:16]}...")
    print(f"   Verifies:  {verify_envelope(envelope)}")


def demo_rest(sdk: PacificaSDK):
    print("\n=== REST Demo ===")
    try:
        prices = sdk.api.get_prices()
        print(f"   Prices: {str(prices)[:120]}...")
    except PacificaError as e:
        print(f"   Failed to fetch prices: {e.error_code} {e.message}")

    if sdk.sign is None:
        return
    try:
        result = sdk.sign.create_limit_order({
            "symbol": "BTC",
            "side": "bid",
            "amount": "0.001",
            "price": "1000",
            "tif": "ALO",
        })
        print(f"   Order result: {result}")
    except PacificaError as e:
        print(f"   Order rejected: {e.error_code} {e.message}")


async def demo_streaming(sdk: PacificaSDK, seconds: float = 10.0):
    print("\n=== Streaming Demo ===")
    sdk.ws.on(EventType.TICKER, lambda data: print(f"   ticker: {data}"))
    sdk.ws.on(EventType.RECONNECT, lambda data: print(f"   reconnecting: {data}"))

    await sdk.ws.connect()
    await sdk.ws.subscribe_to_ticker("BTC")
    await asyncio.sleep(seconds)
    await sdk.ws.disconnect()


def main():
    logging.basicConfig(level=logging.INFO)
    private_key = os.environ.get("PACIFICA_PRIVATE_KEY")

    if private_key:
        demo_offline_signing(private_key)

    with PacificaSDK(private_key, config=PacificaConfig.from_env(log_level="info")) as sdk:
        demo_rest(sdk)
        asyncio.run(demo_streaming(sdk))


if __name__ == "__main__":
    main()
