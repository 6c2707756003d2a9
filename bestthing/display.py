"""Rich UI components for the leaderboard and vote results."""


from rich import box
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from bestthing.leaderboard import LeaderboardEntry
from bestthing.matchup.models import ComparisonState, VoteOutcome


def create_standings_table(
    entries: list[LeaderboardEntry],
    initial_rating: float = 1500.0,
    top_n: int = 10
) -> Table:
    """Create a Rich table showing the current standings."""
    table = Table(
        title="[bold cyan]The Best Thing[/bold cyan]",
        box=box.ROUNDED,
        show_lines=False,
        header_style="bold magenta",
        title_justify="left",
    )

    table.add_column("Rank", style="dim", width=5, justify="center")
    table.add_column("Elo", style="yellow", width=14, justify="right")
    table.add_column("W/L", style="green", width=9, justify="center")
    table.add_column("Conf.", width=6, justify="right")
    table.add_column("Title", style="cyan", max_width=50, overflow="ellipsis")

    for entry in entries[:top_n]:
        item = entry.item
        diff = item.elo_rating - initial_rating
        if diff > 0:
            elo_str = f"[green]{item.elo_rating:.0f}[/green] [dim](+{diff:.0f})[/dim]"
        elif diff < 0:
            elo_str = f"[red]{item.elo_rating:.0f}[/red] [dim]({diff:.0f})[/dim]"
        else:
            elo_str = f"{item.elo_rating:.0f}"

        table.add_row(
            str(entry.rank),
            elo_str,
            f"{item.wins}/{item.losses}",
            f"{entry.confidence:.0%}",
            item.title[:50],
        )

    if len(entries) > top_n:
        table.add_row("...", "", "", "", f"[dim]and {len(entries) - top_n} more[/dim]")

    return table


def create_vote_panel(outcome: VoteOutcome) -> Panel:
    """Create a panel summarizing a recorded vote or skip."""
    item1, item2 = outcome.item1, outcome.item2

    if outcome.state is ComparisonState.SKIPPED:
        return Panel(
            f"[dim]Skipped:[/dim] {item1.title} vs {item2.title}",
            title="[bold]Last Result[/bold]",
            border_style="dim",
            box=box.ROUNDED,
        )

    winner_id = outcome.comparison.winner_id
    winner, loser = (item1, item2) if winner_id == item1.id else (item2, item1)

    content = Text()
    if outcome.was_upset:
        content.append("UPSET! ", style="bold red")
    content.append(winner.title, style="bold green")
    content.append(f" ({winner.elo_rating:.0f})", style="dim")
    content.append(" beat ", style="white")
    content.append(loser.title, style="bold red")
    content.append(f" ({loser.elo_rating:.0f})", style="dim")

    return Panel(
        content,
        title="[bold]Last Result[/bold]",
        border_style="red" if outcome.was_upset else "green",
        box=box.ROUNDED,
    )
