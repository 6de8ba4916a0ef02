#!/usr/bin/env python3
"""Command line front end for sweeping dust and revoking approvals."""

import argparse
import asyncio
import sys
from typing import List, Optional, Sequence, Tuple

from .config import settings
from .core.constants import SUPPORTED_CHAIN_IDS, get_chain_name
from .core.execution import ExecutionOrchestrator
from .core.models import BatchStatus, ExecutionStrategy, RevokeItem, TargetToken, Token
from .core.quotes import QuoteClient
from .core.revoke import RevokeOrchestrator
from .core.strategy import StrategyDetector, describe_strategy, estimate_transaction_count
from .logging_config import setup_logging
from .providers.wallet import Eip1193Wallet
from .services.approvals import ApprovalScanService
from .services.holdings import JsonHoldingsProvider
from .state.dust import DustSession
from .state.revoke import RevokeSession
from .state.wallet import WalletSession


def format_units(amount: int, decimals: int) -> str:
    if decimals <= 0:
        return str(amount)
    whole, frac = divmod(amount, 10 ** decimals)
    frac_str = str(frac).rjust(decimals, "0")[:6].rstrip("0")
    return f"{whole}.{frac_str}" if frac_str else str(whole)


def print_tokens(tokens: Sequence[Token]) -> None:
    if not tokens:
        print("No dust tokens found")
        return
    print("-" * 60)
    for i, token in enumerate(tokens, 1):
        liquid = {None: "", True: "", False: "  (no route)"}[token.is_liquid]
        print(
            f"{i:2d}. {format_units(token.balance, token.decimals):>16} {token.symbol:<10} "
            f"${token.value_usd:>10,.2f}  {token.risk_level.value}{liquid}"
        )


def print_revoke_items(items: Sequence[RevokeItem]) -> None:
    if not items:
        print("No approvals found")
        return
    print("-" * 72)
    for item in items:
        print(
            f"[{item.risk.value:<17}] {item.token_symbol:<10} -> {item.spender_display:<24} "
            f"{item.allowance[:14]:<14} ${item.value_at_risk_usd:,.2f}"
        )
        print(f"    id: {item.id}")


def parse_symbols(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    return [s.strip().upper() for s in raw.split(",") if s.strip()]


def parse_chains(raw: Optional[str]) -> List[int]:
    if not raw:
        return sorted(SUPPORTED_CHAIN_IDS)
    return [int(c) for c in raw.split(",") if c.strip()]


async def build_dust_session(
    holdings_path: str, address: str, chain_id: int
) -> Tuple[DustSession, Eip1193Wallet]:
    wallet = Eip1193Wallet()
    session = WalletSession()
    if not session.connect(address, chain_id):
        raise SystemExit(f"❌ {session.error}")

    quote_client = QuoteClient()
    dust = DustSession(
        holdings=JsonHoldingsProvider(holdings_path),
        quote_client=quote_client,
        orchestrator=ExecutionOrchestrator(wallet, quote_client=quote_client),
        wallet=session,
    )
    await dust.scan(address, chain_id)
    if dust.error:
        raise SystemExit(f"❌ {dust.error}")
    return dust, wallet


async def select_tokens(dust: DustSession, symbols: Optional[List[str]]) -> None:
    if symbols is None:
        await dust.select_all()
        return
    for token in dust.filtered_tokens:
        if token.symbol.upper() in symbols:
            await dust.select_token(token)


async def cli_quote(args: argparse.Namespace) -> int:
    dust, _ = await build_dust_session(args.holdings, args.address, args.chain)
    await dust.set_target_token(TargetToken(args.target))
    print(f"🔍 {dust.dust_count} dust tokens on {get_chain_name(args.chain)}")
    print_tokens(dust.filtered_tokens)

    await select_tokens(dust, parse_symbols(args.symbols))
    if not dust.has_selection:
        print("Nothing selected")
        return 1

    print(f"\n💱 Quotes into {dust.target_token.value}")
    print("-" * 60)
    for token, quote in zip(dust.selected_tokens, dust.quotes):
        if quote.is_liquid:
            print(
                f"{token.symbol:<10} -> {quote.amount_out:>24}  impact {quote.price_impact:5.2f}%  "
                f"gas ${quote.network_cost_usd:,.4f}  via {quote.route_description}"
            )
        else:
            print(f"{token.symbol:<10} -> no route ({quote.route_description})")
    print(f"\nSelected value: ${dust.total_value:,.2f}")
    print(f"Average impact: {dust.avg_price_impact:.2f}%")
    return 0


async def cli_sweep(args: argparse.Namespace) -> int:
    dust, wallet = await build_dust_session(args.holdings, args.address, args.chain)
    await dust.set_target_token(TargetToken(args.target))
    await select_tokens(dust, parse_symbols(args.symbols))
    if not dust.has_selection:
        print("❌ Nothing selected")
        return 1

    if args.strategy == "auto":
        detector = StrategyDetector(wallet, dust.wallet)
        strategy = await detector.detect_strategy(args.address, args.chain)
    else:
        strategy = ExecutionStrategy.LEGACY if args.strategy == "legacy" else ExecutionStrategy.STANDARD_BATCH

    print(f"⚙️  {describe_strategy(strategy)}")
    print(
        f"🧹 Sweeping {dust.selected_count} tokens (${dust.total_value:,.2f}) into {dust.target_token.value}, "
        f"~{estimate_transaction_count(strategy, dust.selected_count)} signature(s)"
    )

    def on_status(status: BatchStatus) -> None:
        print(f"   … {status.value}")

    result = await dust.execute(strategy, on_status=on_status)
    if result.success:
        print(f"✅ Submitted {len(result.tx_hashes)} transaction(s)")
    else:
        print(f"❌ {result.error}")
    for tx_hash in result.tx_hashes:
        print(f"   {tx_hash}")
    if result.success and result.error:
        print(f"⚠️  {result.error}")
    return 0 if result.success else 1


def build_revoke_session() -> RevokeSession:
    return RevokeSession(ApprovalScanService(), RevokeOrchestrator(Eip1193Wallet()))


async def cli_approvals(args: argparse.Namespace) -> int:
    if not settings.has_covalent_key:
        print("⚠️  COVALENT_API_KEY is not set; requests will likely be rejected")
    session = build_revoke_session()
    await session.scan_approvals(args.address, parse_chains(args.chains))
    if session.error:
        print(f"❌ {session.error}")
        return 1

    print(f"🔐 {len(session.items)} approvals, ${session.total_value_at_risk:,.2f} at risk")
    print_revoke_items(session.filtered_items)
    return 0


async def cli_revoke(args: argparse.Namespace) -> int:
    session = build_revoke_session()
    await session.scan_approvals(args.address, [args.chain])
    if session.error:
        print(f"❌ {session.error}")
        return 1

    if args.all:
        session.select_all()
    elif args.high_risk:
        session.select_high_risk()
    elif args.unlimited:
        session.select_unlimited()
    for item_id in args.ids or []:
        session.toggle_item(item_id)

    if args.batch:
        session.set_strategy(ExecutionStrategy.STANDARD_BATCH)

    print(f"🔒 Revoking {len(session.selected_items)} approvals on {get_chain_name(args.chain)}")
    result = await session.execute_revoke(args.address, args.chain)
    if result is None:
        print(f"❌ {session.error}")
        return 1

    print(f"{'✅' if result.success else '❌'} revoked {result.revoked_count}, failed {result.failed_count}")
    for error in result.errors:
        print(f"   {error}")
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Dust sweeper CLI")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    def add_sweep_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("holdings", help="Exported holdings JSON file")
        sub.add_argument("address", help="Wallet address")
        sub.add_argument("--chain", type=int, default=1, help="Chain ID (default: 1)")
        sub.add_argument("--target", choices=[t.value for t in TargetToken], default="ETH")
        sub.add_argument("--symbols", help="Comma separated symbols (default: all dust)")

    quote_parser = subparsers.add_parser("quote", help="Quote the dust in a holdings file")
    add_sweep_args(quote_parser)

    sweep_parser = subparsers.add_parser("sweep", help="Sweep dust into the target asset")
    add_sweep_args(sweep_parser)
    sweep_parser.add_argument("--strategy", choices=["auto", "legacy", "batch"], default="auto")

    approvals_parser = subparsers.add_parser("approvals", help="List token and NFT approvals")
    approvals_parser.add_argument("address", help="Wallet address")
    approvals_parser.add_argument("--chains", help="Comma separated chain IDs (default: all)")

    revoke_parser = subparsers.add_parser("revoke", help="Revoke approvals on one chain")
    revoke_parser.add_argument("address", help="Wallet address")
    revoke_parser.add_argument("--chain", type=int, default=1, help="Chain ID (default: 1)")
    revoke_parser.add_argument("--ids", nargs="*", help="Approval ids to toggle")
    group = revoke_parser.add_mutually_exclusive_group()
    group.add_argument("--all", action="store_true", help="Select every approval")
    group.add_argument("--high-risk", action="store_true", help="Select HIGH RISK approvals")
    group.add_argument("--unlimited", action="store_true", help="Select unlimited approvals")
    revoke_parser.add_argument("--batch", action="store_true", help="Submit as one wallet_sendCalls batch")

    return parser


async def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "quote": cli_quote,
        "sweep": cli_sweep,
        "approvals": cli_approvals,
        "revoke": cli_revoke,
    }
    return await commands[args.command](args)


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
