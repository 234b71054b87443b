"""
Generate CSV output with team budgets and sold rosters.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from . import config
from .auction import repository
from .auction.entity_store import EntityStore

logger = logging.getLogger(__name__)

TEAM_SUMMARY_COLUMNS = [
    'id', 'name', 'wallet', 'spent', 'remaining', 'players', 'remaining_slots',
]

ROSTER_COLUMNS = [
    'team_name', 'player_name', 'house', 'strength', 'batch', 'price', 'sold_at',
]


class OutputWriter:
    """Writes auction results to CSV files."""

    def __init__(self, output_dir: Optional[str] = None):
        """
        Initialize the output writer.

        Args:
            output_dir: Directory to write output files (default from config)
        """
        self.output_dir = Path(output_dir or config.OUTPUT_DIR)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def team_summary(self, store: EntityStore) -> pd.DataFrame:
        """
        One row per team with wallet, spend and open roster spots.

        Returns:
            DataFrame sorted by remaining wallet descending
        """
        rows = []
        for team in repository.list_teams(store):
            rows.append({
                'id': team.id,
                'name': team.name,
                'wallet': team.wallet,
                'spent': team.total_spent(),
                'remaining': team.remaining_wallet(),
                'players': len(team.purchases),
                'remaining_slots': team.remaining_slots(),
            })

        df = pd.DataFrame(rows, columns=TEAM_SUMMARY_COLUMNS)
        return df.sort_values('remaining', ascending=False).reset_index(drop=True)

    def sold_roster(self, store: EntityStore) -> pd.DataFrame:
        """Every sold player with the buying team and price."""
        teams = {team.id: team.name for team in repository.list_teams(store)}

        rows = []
        for player in repository.list_players(store, sold=True):
            rows.append({
                'team_name': teams.get(player.sold_to_team),
                'player_name': player.name,
                'house': player.house,
                'strength': player.strength,
                'batch': player.batch,
                'price': player.sold_price,
                'sold_at': player.sold_at.isoformat() if player.sold_at else None,
            })

        df = pd.DataFrame(rows, columns=ROSTER_COLUMNS)
        return df.sort_values(['team_name', 'price'], ascending=[True, False]).reset_index(drop=True)

    def write_csv(self,
                  df: pd.DataFrame,
                  filename: str,
                  include_timestamp: bool = True) -> Path:
        """
        Write DataFrame to CSV.

        Args:
            df: DataFrame to write
            filename: Base filename, e.g. 'teams'
            include_timestamp: Whether to include timestamp in filename

        Returns:
            Path to output file
        """
        if include_timestamp:
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            filename = f"{filename}_{timestamp}"

        output_path = self.output_dir / f"{filename}.csv"
        df.to_csv(output_path, index=False)

        logger.info(f"Output written to: {output_path} ({len(df)} rows)")
        return output_path


def write_output(store: EntityStore,
                 output_dir: Optional[str] = None,
                 include_timestamp: bool = True) -> Dict[str, Path]:
    """
    Convenience function to write the team summary and the sold roster.

    Returns:
        Dictionary with paths to the 'teams' and 'roster' files
    """
    writer = OutputWriter(output_dir)

    return {
        'teams': writer.write_csv(writer.team_summary(store), 'teams', include_timestamp),
        'roster': writer.write_csv(writer.sold_roster(store), 'roster', include_timestamp),
    }
