#!/usr/bin/env python3
"""
Reconciliation sweep for generation charges and cached balances.

Refunds generations still in the charged state after
STALE_CHARGE_MINUTES (the worker that charged them died before
completing or refunding), and optionally re-derives every cached
balance from the transaction log.

Usage:
    python run_reconciliation.py                    # Refund stale charges
    python run_reconciliation.py --dry-run          # List stale charges only
    python run_reconciliation.py --verify-balances  # Also repair balance drift
    python run_reconciliation.py --older-than 60    # Override the age in minutes

Intended to run from cron against the Supabase store backend.
"""

import argparse
import asyncio
import logging
import sys
from datetime import timedelta

from rich.console import Console
from rich.table import Table

from api.dependencies import ServiceContainer
from modules.billing import CreditService, GenerationCharge
from shared.config import get_settings
from shared.exceptions import StoreError

console = Console()
logger = logging.getLogger("reconciliation")


async def refund_stale_charges(
    credits: CreditService,
    older_than: timedelta,
    dry_run: bool = False,
    batch_size: int = 100,
) -> list[GenerationCharge]:
    """Refund (or list, with dry_run) charges stuck in the charged state."""
    stale = await credits.list_stale_charges(older_than, limit=batch_size)

    table = Table(title=f"Stale charges (older than {older_than})")
    table.add_column("Generation", style="cyan")
    table.add_column("User")
    table.add_column("Model")
    table.add_column("Amount", justify="right")
    table.add_column("Charged At")
    table.add_column("Result")

    refunded = []
    for charge in stale:
        if dry_run:
            outcome = "[dim]would refund[/dim]"
        else:
            result = await credits.refund(charge.generation_id, reason="Stale charge reconciled")
            if result.success:
                refunded.append(charge)
                outcome = "[green]refunded[/green]"
            else:
                outcome = f"[yellow]{result.error}[/yellow]"
        table.add_row(
            charge.generation_id,
            charge.user_id,
            charge.model_name,
            str(charge.amount),
            charge.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            outcome,
        )

    if stale:
        console.print(table)
    else:
        console.print("[green]No stale charges.[/green]")
    return refunded


async def verify_balances(container: ServiceContainer) -> int:
    """Re-derive each cached balance from the log. Returns the number repaired."""
    repaired = 0
    for user_id in container.ledger.list_user_ids():
        result = await container.credits.reconcile(user_id)
        if result.repaired:
            repaired += 1
            console.print(
                f"[yellow]Repaired[/yellow] {user_id}: "
                f"{result.cached_balance} -> {result.computed_balance}"
            )
    if not repaired:
        console.print("[green]All balances match the transaction log.[/green]")
    return repaired


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    container = ServiceContainer(settings)
    older_than = timedelta(minutes=args.older_than or settings.stale_charge_minutes)

    try:
        refunded = await refund_stale_charges(
            container.credits,
            older_than,
            dry_run=args.dry_run,
            batch_size=args.batch_size,
        )
        if not args.dry_run:
            console.print(f"Refunded {len(refunded)} stale charge(s).")

        if args.verify_balances:
            await verify_balances(container)
    except StoreError as e:
        console.print(f"[red]Store error:[/red] {e.message}")
        return 1
    return 0


def main():
    parser = argparse.ArgumentParser(description="Reconcile generation charges and balances")
    parser.add_argument("--dry-run", action="store_true", help="List stale charges without refunding")
    parser.add_argument("--verify-balances", action="store_true", help="Repair cached balance drift")
    parser.add_argument("--older-than", type=int, metavar="MINUTES", help="Stale charge age")
    parser.add_argument("--batch-size", type=int, default=100, help="Charges per run")
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level.upper())
    console.print("[bold]vARY Reconciliation[/bold]")
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
