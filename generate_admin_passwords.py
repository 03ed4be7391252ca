"""
generate_admin_passwords.py – Produce the ADMIN_PASSWORD_HASHES line for .env

Run:
    python generate_admin_passwords.py

Prompts for a password for each registered admin account, bcrypt-hashes it
and prints the single ``ADMIN_PASSWORD_HASHES=email=hash;…`` line to paste
into .env.  Leave a password blank to skip that account.
"""

from __future__ import annotations

import sys
from pathlib import Path

# ── make src/ importable without installing the package ──────────────────────
sys.path.insert(0, str(Path(__file__).parent / "src"))

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from nca_enrolment.auth import ADMIN_ACCOUNTS, hash_password, verify_password

console = Console()


def main() -> None:
    console.print(Panel("[bold]NCA admin password setup[/bold]",
                        subtitle="bcrypt hashes for ADMIN_PASSWORD_HASHES", expand=False))

    table = Table(box=box.ROUNDED)
    table.add_column("Email", style="bold cyan", no_wrap=True)
    table.add_column("Role")
    table.add_column("Status")

    pairs: list[str] = []
    for email, account in ADMIN_ACCOUNTS.items():
        password = Prompt.ask(f"Password for [cyan]{email}[/cyan]", password=True, default="")
        if not password:
            table.add_row(email, account.role.value, "[dim]skipped[/dim]")
            continue
        if password != Prompt.ask("   confirm", password=True, default=""):
            table.add_row(email, account.role.value, "[red]✗ mismatch – skipped[/red]")
            continue
        hashed = hash_password(password)
        assert verify_password(password, hashed)
        pairs.append(f"{email}={hashed}")
        table.add_row(email, account.role.value, "[green]✓ hashed[/green]")

    console.print(table)
    if not pairs:
        console.print("[yellow]No passwords entered – nothing to write.[/yellow]")
        return
    console.print("\nAdd this line to your [bold].env[/bold]:\n")
    console.print(f"ADMIN_PASSWORD_HASHES={';'.join(pairs)}", soft_wrap=True, highlight=False)


if __name__ == "__main__":
    main()
