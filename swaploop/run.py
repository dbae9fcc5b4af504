"""SwapLoop: CLI entry point.

Runs the alternating APT <-> kAPT swap loop against one Tapp stable pool.

Usage:
    python3 -m swaploop.run
    python3 -m swaploop.run --batch-size 10
    python3 -m swaploop.run --config config/swap.yaml --log-level DEBUG

Exit codes:
    0 = loop completed (individual attempts may have failed)
    1 = configuration error, nothing attempted
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from swaploop.clients.aptos import AptosClient
from swaploop.clients.tapp import TappClient
from swaploop.config import ConfigurationError, SwapConfig, load_config, load_notification_config
from swaploop.controller import SwapLoopController
from swaploop.notifier import Notifier, build_notifier
from swaploop.signer.keys import SigningKey, load_signing_key
from swaploop.state import RunState

log = logging.getLogger("swaploop.run")


async def run_swap_loop(config: SwapConfig, signer: SigningKey, notifier: Notifier) -> RunState:
    """Wire the clients for `config` and run the loop to completion."""
    chain = AptosClient(
        node_url=config.node_url,
        max_gas_amount=config.max_gas_amount,
        txn_ttl_seconds=config.txn_ttl_seconds,
        confirmation_timeout=config.confirmation_timeout_seconds,
    )
    exchange = TappClient(api_url=config.tapp_api_url, swap_function=config.swap_function)

    try:
        controller = SwapLoopController(config, chain, exchange, signer, notifier)
        return await controller.run()
    finally:
        await chain.close()
        await exchange.close()


async def _report_config_error(notifier: Notifier, error: ConfigurationError) -> None:
    await notifier.notify(f"🚨 Configuration error: {error}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="SwapLoop: alternating APT/kAPT swaps on Tapp")
    parser.add_argument("--batch-size", type=int, default=None, help="Number of attempts (default: 50)")
    parser.add_argument("--config", type=Path, default=None, help="YAML config path (default: config/swap.yaml)")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()

    notifier = build_notifier(load_notification_config())

    try:
        config = load_config(path=args.config, overrides={"batch_size": args.batch_size})
        signer = load_signing_key(config.private_key)
    except ConfigurationError as e:
        log.error("Configuration error: %s (check your .env)", e)
        asyncio.run(_report_config_error(notifier, e))
        sys.exit(1)

    asyncio.run(run_swap_loop(config, signer, notifier))
    sys.exit(0)


if __name__ == "__main__":
    main()
