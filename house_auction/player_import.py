"""
Import registered players from a spreadsheet into the auction pool.

Registration sheets come from a form export, so labels are loose: houses are
matched case-insensitively, and playing strengths go through an alias table
and then a fuzzy match before a row is rejected.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pandas as pd
from fuzzywuzzy import fuzz, process
from tqdm import tqdm

from . import config
from .auction.entity_store import PLAYERS, EntityStore
from .auction.models import Player

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ['name', 'batch', 'house', 'strength']


@dataclass
class ImportResult:
    """Counts and row errors from one import run."""

    total: int = 0
    imported: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'total': self.total,
            'imported': self.imported,
            'skipped': self.skipped,
            'errors': list(self.errors),
        }


def normalize_house(value: str) -> Optional[str]:
    if not value:
        return None
    for house in config.HOUSES:
        if house.lower() == value.lower():
            return house
    return None


def normalize_strength(value: str) -> Optional[str]:
    """
    Map a free-text strength label to one of config.STRENGTHS.

    Exact aliases win; otherwise the closest alias is accepted if its
    token-sort score reaches config.STRENGTH_MATCH_THRESHOLD.
    """
    if not value:
        return None
    if value in config.STRENGTH_ALIASES:
        return config.STRENGTH_ALIASES[value]
    if value in config.STRENGTHS:
        return value

    match_result = process.extractOne(
        value,
        list(config.STRENGTH_ALIASES.keys()),
        scorer=fuzz.token_sort_ratio
    )
    if match_result is None:
        return None

    matched_label, score = match_result[0], match_result[1]
    if score < config.STRENGTH_MATCH_THRESHOLD:
        logger.debug(f"No strength match for '{value}' (best '{matched_label}', {score}%)")
        return None

    logger.debug(f"Matched strength '{value}' → '{matched_label}' ({score}%)")
    return config.STRENGTH_ALIASES[matched_label]


def _text(value) -> str:
    if value is None or pd.isna(value):
        return ''
    return str(value).strip()


def _number(value, default: int = 0) -> int:
    text = _text(value)
    if not text:
        return default
    try:
        return int(float(text))
    except ValueError:
        return default


class PlayerImporter:
    """Reads a registration sheet and creates player records."""

    def __init__(self, store: EntityStore, column_mapping: Optional[Dict[str, str]] = None):
        """
        Initialize the importer.

        Args:
            store: Entity store that receives the players
            column_mapping: Player field -> sheet column
                            (default: config.IMPORT_COLUMN_MAPPING)
        """
        self.store = store
        self.column_mapping = column_mapping or config.IMPORT_COLUMN_MAPPING

    def load_sheet(self, filepath: Path) -> pd.DataFrame:
        """
        Load the first sheet of an .xlsx/.xls workbook, or a CSV file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If a required column is missing
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Player file not found: {filepath}")

        if filepath.suffix.lower() in ('.xlsx', '.xls'):
            df = pd.read_excel(filepath, dtype=str)
        else:
            df = pd.read_csv(filepath, dtype=str)

        missing = [
            self.column_mapping[name] for name in REQUIRED_FIELDS
            if self.column_mapping.get(name) not in df.columns
        ]
        if missing:
            raise ValueError(f"Player file is missing columns: {', '.join(missing)}")

        logger.info(f"Read {len(df)} rows from {filepath}")
        return df

    def parse_row(self, row: pd.Series, row_number: int) -> Tuple[Optional[Player], List[str]]:
        """
        Build a Player from one sheet row.

        Returns:
            (player, []) on success or (None, errors) when the row is invalid
        """
        def cell(field_name):
            column = self.column_mapping.get(field_name)
            return row.get(column) if column else None

        errors = []

        name = _text(cell('name'))
        if not name:
            errors.append(f"Row {row_number}: Missing name")

        batch = _number(cell('batch'))
        if not config.MIN_BATCH <= batch <= config.MAX_BATCH:
            errors.append(
                f"Row {row_number}: Invalid batch "
                f"(must be {config.MIN_BATCH}-{config.MAX_BATCH})"
            )

        house = normalize_house(_text(cell('house')))
        if not house:
            errors.append(
                f"Row {row_number}: Invalid house (must be one of: {', '.join(config.HOUSES)})"
            )

        strength = normalize_strength(_text(cell('strength')))
        if not strength:
            errors.append(
                f"Row {row_number}: Invalid strength "
                f"(must be one of: {', '.join(config.STRENGTHS)})"
            )

        if errors:
            return None, errors

        base_price = _number(cell('base_price'), config.DEFAULT_PLAYER_BASE_PRICE)
        player = Player(
            name=name,
            house=house,
            strength=strength,
            batch=batch,
            base_price=base_price if base_price > 0 else config.DEFAULT_PLAYER_BASE_PRICE,
            phone_number=_text(cell('phone_number')),
            total_match_played=_number(cell('total_match_played')),
            total_score=_number(cell('total_score')),
            total_wicket=_number(cell('total_wicket')),
            photo_url=_text(cell('photo_url')),
        )
        return player, []

    def import_frame(
        self,
        df: pd.DataFrame,
        dry_run: bool = False,
        skip_existing: bool = True
    ) -> ImportResult:
        """
        Import every valid row of a loaded sheet.

        Args:
            df: Sheet rows
            dry_run: Validate and count without writing
            skip_existing: Skip players whose name and batch already exist

        Returns:
            ImportResult for the run
        """
        result = ImportResult(total=len(df))
        seen: Set[Tuple[str, int]] = set()

        for position, (_, row) in enumerate(
            tqdm(df.iterrows(), total=len(df), desc="Importing players")
        ):
            row_number = position + 2  # sheet row, after the header
            player, errors = self.parse_row(row, row_number)
            if errors:
                result.errors.extend(errors)
                continue

            key = (player.name, player.batch)
            if skip_existing and (
                key in seen
                or self.store.find_one(PLAYERS, {'name': player.name, 'batch': player.batch})
            ):
                logger.info(
                    f"Row {row_number}: Skipping existing player {player.name} "
                    f"(batch {player.batch})"
                )
                result.skipped += 1
                continue
            seen.add(key)

            if dry_run:
                logger.info(f"Row {row_number}: Would import {player.name} ({player.house})")
                result.imported += 1
                continue

            try:
                player.validate()
                self.store.create(PLAYERS, player.to_dict())
            except ValueError as e:
                message = f"Row {row_number}: Failed to import {player.name}: {e}"
                logger.error(message)
                result.errors.append(message)
                continue

            logger.debug(f"Row {row_number}: Imported {player.name} ({player.house})")
            result.imported += 1

        return result


def import_players(
    store: EntityStore,
    filepath: Path,
    dry_run: bool = False,
    skip_existing: bool = True
) -> ImportResult:
    """
    Convenience function to import a registration sheet.

    Args:
        store: Entity store that receives the players
        filepath: .xlsx, .xls or .csv file
        dry_run: Validate only
        skip_existing: Skip players whose name and batch already exist

    Returns:
        ImportResult with counts and row errors
    """
    importer = PlayerImporter(store)
    df = importer.load_sheet(filepath)
    result = importer.import_frame(df, dry_run=dry_run, skip_existing=skip_existing)

    logger.info(
        f"Import {'(dry run) ' if dry_run else ''}finished: {result.imported} imported, "
        f"{result.skipped} skipped, {len(result.errors)} errors of {result.total} rows"
    )
    for error in result.errors:
        logger.warning(error)

    return result
