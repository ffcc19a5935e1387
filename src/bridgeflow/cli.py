"""Command line entry point.

Usage:
    python -m bridgeflow transfer --source 11 --target 3 --amount 100000
    python -m bridgeflow address --chain 1
    python -m bridgeflow balance --chain 2
    python -m bridgeflow chains
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from bridgeflow.api.client import CrossChainAPIClient
from bridgeflow.chains import ChainRegistry
from bridgeflow.config import Settings, get_settings
from bridgeflow.errors import BridgeError
from bridgeflow.orchestrator import TransferOrchestrator
from bridgeflow.polling import RetryPolicy, StatusPoller
from bridgeflow.signing.factory import SignerTable

logger = logging.getLogger("bridgeflow")

DIVIDER = "=" * 80


def configure_logging(debug: bool) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bridgeflow", description="Run a cross-chain transfer")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    transfer = sub.add_parser("transfer", help="Quote, send and track a transfer")
    transfer.add_argument("--source", type=int, required=True, help="Source chain id")
    transfer.add_argument("--target", type=int, required=True, help="Target chain id")
    transfer.add_argument("--amount", required=True, help="Amount in minor units (e.g. 100000 = 0.1 USDC)")
    transfer.add_argument("--recipient", help="Recipient address (default: own address on target)")
    transfer.add_argument("--source-token", help="Source token address (default: USDC)")
    transfer.add_argument("--target-token", help="Target token address (default: USDC)")
    transfer.add_argument("--exact-out", action="store_true", help="Quote in ExactOut mode")

    address = sub.add_parser("address", help="Show the local account address on a chain")
    address.add_argument("--chain", type=int, required=True, help="Chain id")

    balance = sub.add_parser("balance", help="Show the native balance on a chain")
    balance.add_argument("--chain", type=int, required=True, help="Chain id")

    sub.add_parser("chains", help="List supported chains")
    return parser


async def _run_transfer(args: argparse.Namespace, settings: Settings, registry: ChainRegistry, signers: SignerTable) -> int:
    async with CrossChainAPIClient(settings) as api_client:
        poller = StatusPoller(api_client, policy=RetryPolicy(max_attempts=settings.poll_max_attempts))
        orchestrator = TransferOrchestrator(api_client, registry, signers, poller=poller)

        print(DIVIDER)
        result = await orchestrator.run(
            args.source,
            args.target,
            args.amount,
            recipient_address=args.recipient,
            source_token_address=args.source_token,
            target_token_address=args.target_token,
            exact_out=args.exact_out,
        )
        print(DIVIDER)
        print(f"Transfer completed. Request ID: {result.request.request_id}")
        print(f"Source Tx Hash: {result.tx_hash}")
        print(f"Final Tx Hash: {result.status.tx_hash}")
        print(f"Final Status: {result.status.status}")
        print(DIVIDER)
    return 0


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    registry = ChainRegistry.from_settings(settings)

    if args.command == "chains":
        for chain in registry.all():
            print(f"{chain.chain_id:>3}  {chain.name:<10} {chain.family.value}  {chain.rpc_url}")
        return 0

    signers = SignerTable(registry, settings=settings)
    try:
        if args.command == "address":
            print(signers.address_of(args.chain))
            return 0
        if args.command == "balance":
            chain = registry.get(args.chain)
            amount = await signers.get(args.chain).get_balance()
            print(f"{amount} {chain.native_currency.symbol}")
            return 0
        return await _run_transfer(args, settings, registry, signers)
    finally:
        await signers.close()


def report_error(error: BridgeError) -> None:
    """Print the structured payload when there is one, else the message."""
    logger.error(f"Transfer failed: {error.message}")
    if error.payload is not None:
        print(json.dumps(error.payload, indent=2, default=str), file=sys.stderr)
    else:
        print(error.message, file=sys.stderr)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.debug or settings.debug)
    logger.debug(f"Settings: {settings.get_safe_dict()}")

    try:
        return asyncio.run(_run(args, settings))
    except BridgeError as e:
        report_error(e)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
