"""Context document naming for matches and bonus questions."""

from tipster.context.abbreviations import get_team_abbreviation
from tipster.models import Match

STANDINGS_DOCUMENT = "bundesliga-standings.csv"

KPI_CONTEXT_ANNOTATION = "kpi-context"
TEAM_DATA_DOCUMENT = "team-data"
MANAGER_DATA_DOCUMENT = "manager-data"


def required_document_names(match: Match, community: str) -> list[str]:
    """The seven documents every match prediction needs, in fixed order."""
    home = get_team_abbreviation(match.home_team)
    away = get_team_abbreviation(match.away_team)
    return [
        STANDINGS_DOCUMENT,
        f"community-rules-{community}.md",
        f"recent-history-{home}.csv",
        f"recent-history-{away}.csv",
        f"home-history-{home}.csv",
        f"away-history-{away}.csv",
        f"head-to-head-{home}-vs-{away}.csv",
    ]


def optional_document_names(match: Match) -> list[str]:
    """Best-effort extras (per-team transfer notes)."""
    home = get_team_abbreviation(match.home_team)
    away = get_team_abbreviation(match.away_team)
    return [f"{home}-transfers.csv", f"{away}-transfers.csv"]


def strip_display_suffix(document_name: str) -> str:
    """
    Canonical name from a display-decorated one: "team-data (kpi-context)" -> "team-data".

    Only needed for names recorded before annotations were kept separately.
    """
    if document_name.endswith(")"):
        index = document_name.rfind(" (")
        if index > 0:
            return document_name[:index]
    return document_name
