"""
Append-only log of settled sales.

Uses JSONL (JSON Lines) format where each line is one completed sale. The
entity store holds the live state; this log is the audit trail of who bought
whom and for how much, in settlement order, and survives resets.
"""

import csv
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import List

logger = logging.getLogger(__name__)


@dataclass
class SaleRecord:
    """One settled sale."""

    sale_number: int          # 1-based settlement order
    player_id: str
    player_name: str
    team_id: str
    team_name: str
    price: int
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            'sale_number': self.sale_number,
            'player_id': self.player_id,
            'player_name': self.player_name,
            'team_id': self.team_id,
            'team_name': self.team_name,
            'price': self.price,
            'timestamp': self.timestamp.isoformat()
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SaleRecord':
        return cls(
            sale_number=data['sale_number'],
            player_id=data['player_id'],
            player_name=data['player_name'],
            team_id=data['team_id'],
            team_name=data['team_name'],
            price=data['price'],
            timestamp=datetime.fromisoformat(data['timestamp'])
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str) -> 'SaleRecord':
        return cls.from_dict(json.loads(json_str))


class SaleLog:
    """Append-only JSONL log of settled sales."""

    def __init__(self, filepath: Path):
        """
        Initialize sale log.

        Args:
            filepath: Path to JSONL file for sale records
        """
        self.filepath = Path(filepath)
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    def append(self, record: SaleRecord) -> None:
        with open(self.filepath, 'a', encoding='utf-8') as f:
            f.write(record.to_json() + '\n')
        logger.debug(
            f"Logged sale {record.sale_number}: {record.player_name} → "
            f"{record.team_name} ({record.price})"
        )

    def next_sale_number(self) -> int:
        return self.count() + 1

    def record_sale(
        self,
        player_id: str,
        player_name: str,
        team_id: str,
        team_name: str,
        price: int,
        timestamp: datetime
    ) -> SaleRecord:
        """
        Number a sale and append it in one step.

        Numbering and appending share a lock, so concurrent settlements
        never receive the same sale number.
        """
        with self._lock:
            record = SaleRecord(
                sale_number=self.next_sale_number(),
                player_id=player_id,
                player_name=player_name,
                team_id=team_id,
                team_name=team_name,
                price=price,
                timestamp=timestamp
            )
            self.append(record)
        return record

    def load_all(self) -> List[SaleRecord]:
        """
        Load every sale in settlement order.

        Lines that fail to parse are logged and skipped. Returns an empty
        list if the file doesn't exist.
        """
        if not self.filepath.exists():
            return []

        records = []
        with open(self.filepath, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue

                try:
                    records.append(SaleRecord.from_json(line))
                except (json.JSONDecodeError, KeyError, ValueError) as e:
                    logger.error(f"Failed to parse sale at line {line_num}: {e}")

        logger.info(f"Loaded {len(records)} sales from {self.filepath}")
        return records

    def count(self) -> int:
        if not self.filepath.exists():
            return 0

        with open(self.filepath, 'r', encoding='utf-8') as f:
            return sum(1 for line in f if line.strip())

    def export_to_csv(self, output_path: Path) -> int:
        """
        Export the log to CSV.

        Returns:
            Number of rows written
        """
        records = self.load_all()
        if not records:
            logger.warning("No sales to export")
            return 0

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow([
                'sale_number', 'player_id', 'player_name',
                'team_id', 'team_name', 'price', 'timestamp'
            ])
            for record in records:
                writer.writerow([
                    record.sale_number,
                    record.player_id,
                    record.player_name,
                    record.team_id,
                    record.team_name,
                    record.price,
                    record.timestamp.isoformat()
                ])

        logger.info(f"Exported {len(records)} sales to {output_path}")
        return len(records)
