"""
Command-line interface for the Solana Broadcaster.

Provides commands for broadcasting transfers, checking balances, and sending
transfers on block notifications.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

import structlog
from pydantic import ValidationError

from broadcaster import __version__
from broadcaster.config import BroadcasterConfig, NetworkType, set_config
from broadcaster.core.balances import fetch_balances, wait_until_healthy
from broadcaster.core.dispatcher import Dispatcher
from broadcaster.core.outcome import TransactionOutcome
from broadcaster.core.triggered import TriggeredSender
from broadcaster.core.wallet import WalletConfigError, WalletSet, load_wallet_set
from broadcaster.node.interface import NodeConnectionError
from broadcaster.node.solana_rpc import SolanaRpcAdapter
from broadcaster.node.subscription import BlockSubscription


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--wallets",
        default=None,
        help="Wallet file (default: config.yaml)",
    )
    parser.add_argument(
        "--network",
        choices=[n.value for n in NetworkType],
        default=None,
        help="Solana cluster (default: devnet)",
    )
    parser.add_argument(
        "--rpc-url",
        help="JSON-RPC endpoint (overrides network and wallet file)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="solana-broadcaster",
        description="Concurrent Solana transfer broadcaster",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Send command
    send_parser = subparsers.add_parser("send", help="Send from every wallet to every receiver")
    _add_common_arguments(send_parser)
    send_parser.add_argument(
        "--amount",
        type=int,
        help="Lamports per transfer (default: 2000000)",
    )
    send_parser.add_argument(
        "--max-concurrency",
        type=int,
        help="Maximum transfers in flight (default: unbounded)",
    )
    send_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the batch report as JSON",
    )

    # Balances command
    balances_parser = subparsers.add_parser("balances", help="Show wallet balances")
    _add_common_arguments(balances_parser)

    # Watch command
    watch_parser = subparsers.add_parser(
        "watch",
        help="Send one transfer per block that mentions the sender",
    )
    _add_common_arguments(watch_parser)
    watch_parser.add_argument(
        "--amount",
        type=int,
        help="Lamports per transfer (default: wallet file amount or 2000000)",
    )
    watch_parser.add_argument(
        "--ws-url",
        help="WebSocket endpoint (default: derived from the RPC endpoint)",
    )

    return parser


def build_config(args: argparse.Namespace) -> BroadcasterConfig:
    """Create configuration from command-line overrides."""
    overrides = {
        "network": getattr(args, "network", None),
        "rpc_url": getattr(args, "rpc_url", None),
        "ws_url": getattr(args, "ws_url", None),
        "wallets_file": getattr(args, "wallets", None),
        "amount_lamports": getattr(args, "amount", None),
        "max_concurrency": getattr(args, "max_concurrency", None),
        "log_level": getattr(args, "log_level", None),
        "log_json": getattr(args, "log_json", None),
    }
    config = BroadcasterConfig(**{k: v for k, v in overrides.items() if v is not None})
    set_config(config)
    return config


def apply_wallet_overrides(
    config: BroadcasterConfig,
    wallet_set: WalletSet,
    args: argparse.Namespace,
) -> BroadcasterConfig:
    """Let the wallet file supply the endpoint and amount when the command line does not."""
    update = {}
    if wallet_set.rpc_url and not getattr(args, "rpc_url", None):
        update["rpc_url"] = wallet_set.rpc_url
    if wallet_set.amount is not None and getattr(args, "amount", None) is None:
        update["amount_lamports"] = wallet_set.amount

    if update:
        config = config.model_copy(update=update)
        set_config(config)
    return config


def print_outcome(outcome: TransactionOutcome) -> None:
    print(outcome.describe())


async def send_transfers(args: argparse.Namespace) -> int:
    """Send a transfer for every (sender, receiver) pair."""
    config = build_config(args)
    wallet_set = load_wallet_set(config.wallets_file)
    config = apply_wallet_overrides(config, wallet_set, args)

    ledger = SolanaRpcAdapter(config)
    await ledger.connect()

    try:
        dispatcher = Dispatcher(ledger=ledger, config=config)
        if not args.json:
            dispatcher.on_outcome(print_outcome)

        report = await dispatcher.broadcast(wallet_set)
    finally:
        await ledger.disconnect()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print()
        print(report.summary())

    return 1 if report.all_failed else 0


async def show_balances(args: argparse.Namespace) -> int:
    """Print the balance of every sender and receiver."""
    config = build_config(args)
    wallet_set = load_wallet_set(config.wallets_file)
    config = apply_wallet_overrides(config, wallet_set, args)

    addresses = wallet_set.addresses()
    if not addresses:
        print("No wallets found in wallet file.")
        return 0

    ledger = SolanaRpcAdapter(config)
    await ledger.connect()

    try:
        await wait_until_healthy(
            ledger,
            interval_seconds=config.health_check_interval_seconds,
            attempts=config.health_check_attempts,
        )
        balances = await fetch_balances(ledger, addresses)
    finally:
        await ledger.disconnect()

    for result in balances:
        print(result.describe())

    return 0


async def watch_blocks(args: argparse.Namespace) -> int:
    """Send one transfer per block notification mentioning the sender."""
    config = build_config(args)
    wallet_set = load_wallet_set(config.wallets_file)
    config = apply_wallet_overrides(config, wallet_set, args)

    if not wallet_set.is_single_pair:
        print(
            f"watch needs exactly one sender and one receiver, "
            f"wallet file has {len(wallet_set.senders)} and {len(wallet_set.receivers)}"
        )
        return 1

    request = next(wallet_set.transfer_requests(config.amount_lamports))
    ledger = SolanaRpcAdapter(config)
    await ledger.connect()

    try:
        sender = TriggeredSender(Dispatcher(ledger=ledger, config=config), request)
        sender.on_outcome(print_outcome)

        async with BlockSubscription(
            config.ws_endpoint,
            str(request.sender.address),
            commitment=config.acceptance_commitment,
        ) as updates:
            await sender.run(updates)
    finally:
        await ledger.disconnect()

    return 0


def main(argv: Optional[list] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Setup logging
    setup_logging(args.log_level, args.log_json)

    commands = {
        "send": send_transfers,
        "balances": show_balances,
        "watch": watch_blocks,
    }

    try:
        exit_code = asyncio.run(commands[args.command](args))
    except (WalletConfigError, NodeConnectionError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        exit_code = 2
    except KeyboardInterrupt:
        print("\nShutting down...")
        exit_code = 130

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
