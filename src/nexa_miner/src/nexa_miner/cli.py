import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys

from loguru import logger
from rich.console import Console
from rich.table import Table

from accounting import BackendAPIClient, TokenStore
from common import settings as common_settings
from common.utils.exceptions import RelayException
from common.utils.metrics import start_metrics_server

from nexa_miner import settings as miner_settings
from nexa_miner.dashboard import DashboardRunner
from nexa_miner.relay import MiningRelay


console = Console()


def _install_loguru_null_sink() -> None:
    """Silence loguru output while the live dashboard owns the terminal."""
    logger.remove()
    logger.add(lambda message: None)


def _quiet_logging() -> None:
    _install_loguru_null_sink()
    logging.disable(logging.CRITICAL)
    for name in ("aiohttp", "aiohttp.access", "asyncio"):
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.setLevel(logging.CRITICAL)
        stdlib_logger.handlers.clear()
    logging.captureWarnings(False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Relay GPU miner telemetry to the accounting backend.")
    parser.add_argument("--wallet", dest="wallet", default=miner_settings.MINER_WALLET, help="Payout wallet address.")
    parser.add_argument("--worker", dest="worker", default=miner_settings.MINER_WORKER, help="Worker / rig name.")
    parser.add_argument(
        "--username",
        dest="username",
        default=miner_settings.MINER_USERNAME,
        help="Display name sent when authenticating. Optional.",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Authenticate, start mining and relay telemetry until Ctrl+C.")
    run_parser.add_argument(
        "--monitor-only",
        dest="monitor_only",
        action="store_true",
        help="Do not launch the miner binary; relay stats from an already running miner.",
    )
    run_parser.add_argument(
        "--dashboard",
        dest="show_dashboard",
        action="store_true",
        help="Enable the live terminal dashboard (default).",
    )
    run_parser.add_argument(
        "--no-dashboard",
        dest="show_dashboard",
        action="store_false",
        help="Disable the live terminal dashboard and re-enable log output.",
    )
    run_parser.add_argument(
        "--metrics-port",
        dest="metrics_port",
        type=int,
        default=miner_settings.METRICS_PORT,
        help="Expose Prometheus metrics on this port.",
    )
    run_parser.set_defaults(monitor_only=False, show_dashboard=True)

    subparsers.add_parser("balance", help="Show the wallet balance.")

    history_parser = subparsers.add_parser("history", help="Show past mining sessions.")
    history_parser.add_argument("--page", type=int, default=1)
    history_parser.add_argument("--limit", type=int, default=20)

    subparsers.add_parser("leaderboard", help="Show the mining leaderboard.")

    withdraw_parser = subparsers.add_parser("withdraw", help="Request a withdrawal of the virtual balance.")
    withdraw_parser.add_argument("--amount", type=float, required=True)
    withdraw_parser.add_argument("--to", dest="to_address", required=True, help="Destination wallet address.")

    subparsers.add_parser("logout", help="Forget the stored bearer token.")
    return parser


async def run_relay(args: argparse.Namespace) -> int:
    relay = MiningRelay(
        wallet=args.wallet,
        worker=args.worker,
        username=args.username,
        launch_miner=not args.monitor_only,
    )
    dashboard = None
    if args.show_dashboard:
        dashboard = DashboardRunner(relay=relay, refresh_interval=miner_settings.DASHBOARD_REFRESH_INTERVAL)

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop_requested.set)

    await relay.open()
    try:
        if dashboard is not None:
            await dashboard.start()
        if not await relay.orchestrator.start_mining():
            logger.error("Mining did not start, see the operator log for details")
            if dashboard is None:
                for line in relay.tracker.log_lines():
                    console.print(line)
                return 1

        waiters = [asyncio.create_task(stop_requested.wait())]
        if dashboard is not None:
            waiters.append(asyncio.create_task(dashboard.stopped.wait()))
        _, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
    finally:
        await relay.orchestrator.stop_mining()
        if dashboard is not None:
            await dashboard.stop()
        await relay.close()
    return 0


async def _authenticated(args: argparse.Namespace, client: BackendAPIClient):
    return await client.authenticate(args.wallet, args.username)


async def show_balance(args: argparse.Namespace) -> int:
    async with BackendAPIClient(token_store=TokenStore()) as client:
        user = await _authenticated(args, client)
        balance = await client.get_wallet_balance(user.id)
    console.print(f"Balance: [bold yellow]{balance:.2f} {common_settings.BALANCE_CURRENCY}[/]")
    return 0


async def show_history(args: argparse.Namespace) -> int:
    async with BackendAPIClient(token_store=TokenStore()) as client:
        user = await _authenticated(args, client)
        history = await client.get_mining_history(user.id, page=args.page, limit=args.limit)
    console.print_json(json.dumps(history, default=str))
    return 0


async def show_leaderboard(args: argparse.Namespace) -> int:
    async with BackendAPIClient(token_store=TokenStore()) as client:
        leaderboard = await client.get_mining_leaderboard()

    entries = leaderboard if isinstance(leaderboard, list) else leaderboard.get("leaderboard", [])
    table = Table(title="Mining Leaderboard")
    table.add_column("#", justify="right")
    table.add_column("User")
    table.add_column("Total Mined", justify="right")
    for rank, entry in enumerate(entries, start=1):
        name = entry.get("username") or entry.get("walletAddress") or entry.get("id", "—")
        table.add_row(str(rank), str(name), str(entry.get("totalMined", "—")))
    console.print(table)
    return 0


async def withdraw(args: argparse.Namespace) -> int:
    async with BackendAPIClient(token_store=TokenStore()) as client:
        user = await _authenticated(args, client)
        result = await client.request_withdrawal(user.id, args.amount, args.to_address)
    console.print(f"[green]Withdrawal requested:[/] {args.amount:g} {common_settings.BALANCE_CURRENCY} -> {args.to_address}")
    if result:
        console.print_json(json.dumps(result, default=str))
    return 0


def logout() -> int:
    BackendAPIClient(token_store=TokenStore()).clear_token()
    console.print("Stored token cleared")
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    argv = list(argv if argv is not None else sys.argv[1:])
    args = parser.parse_args(argv)
    if args.command is None:
        # Bare invocation behaves like `run` with its defaults
        args = parser.parse_args([*argv, "run"])
    return args


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    command = args.command

    if command == "run" and args.show_dashboard:
        _quiet_logging()
    if command == "run" and args.metrics_port:
        start_metrics_server(args.metrics_port)

    handlers = {
        "run": run_relay,
        "balance": show_balance,
        "history": show_history,
        "leaderboard": show_leaderboard,
        "withdraw": withdraw,
    }
    try:
        if command == "logout":
            return logout()
        return asyncio.run(handlers[command](args))
    except KeyboardInterrupt:
        return 130
    except (RelayException, ValueError) as e:
        console.print(f"[red]{e}[/]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
