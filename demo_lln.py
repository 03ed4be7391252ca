"""
demo_lln.py – Take the LLN assessment in the terminal

Run:
    python demo_lln.py

Walks through the 22 questions section by section, scores the answers with
the same engine the web wizard uses and prints the per-section breakdown.
Nothing is written to the record store.
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

from nca_enrolment.models import MultiChoiceQuestion, Rating, SingleChoiceQuestion
from nca_enrolment.question_bank import questions_for, sections
from nca_enrolment.scoring import score

console = Console()

RATING_STYLE = {
    Rating.EXCELLENT:                 "bold green",
    Rating.GOOD:                      "bold cyan",
    Rating.NEEDS_SOME_SUPPORT:        "bold yellow",
    Rating.NEEDS_SIGNIFICANT_SUPPORT: "bold red",
}


def _bar(pct: int, width: int = 20) -> str:
    filled = round(pct / 100 * width)
    return "[" + "█" * filled + "░" * (width - filled) + f"] {pct}%"


def _ask(q) -> str | list[str]:
    console.print(f"\n[bold]{q.id[1:]}.[/bold] {q.prompt}")
    if q.hint:
        console.print(f"[dim]{q.hint}[/dim]")
    if isinstance(q, MultiChoiceQuestion):
        for i, opt in enumerate(q.options, start=1):
            console.print(f"   {i}. {opt}")
        raw = Prompt.ask("   Choose one or more (comma-separated numbers)")
        picks = [int(p) for p in raw.replace(" ", "").split(",") if p.isdigit()]
        return [q.options[i - 1] for i in picks if 1 <= i <= len(q.options)]
    if isinstance(q, SingleChoiceQuestion):
        for i, opt in enumerate(q.options, start=1):
            console.print(f"   {i}. {opt}")
        pick = Prompt.ask("   Choose", choices=[str(i) for i in range(1, len(q.options) + 1)])
        return q.options[int(pick) - 1]
    return Prompt.ask("   >")


def main() -> None:
    console.print(Panel("[bold]National College Australia – LLN Assessment[/bold]",
                        subtitle="22 questions · 5 sections", expand=False))
    responses: dict = {}
    for section in sections():
        console.rule(f"[bold magenta]{section.value}[/bold magenta]")
        for q in questions_for(section):
            responses[q.id] = _ask(q)

    result = score(responses)

    table = Table(box=box.ROUNDED, show_header=True)
    table.add_column("Section", style="bold cyan", no_wrap=True)
    table.add_column("Score")
    for label, pct in result.per_section.items():
        table.add_row(label, _bar(pct))
    table.add_row("[bold]Overall[/bold]", _bar(result.overall))
    console.print()
    console.print(table)

    style = RATING_STYLE[result.rating]
    console.print(Panel(
        f"[{style}]{result.rating.value}[/{style}] · {result.eligibility_label}\n\n{result.recommendation}",
        title="Result", border_style=style.split()[-1],
    ))


if __name__ == "__main__":
    main()
