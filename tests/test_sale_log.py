"""
Unit tests for the sale log.

Tests:
- Append and load in order
- Corrupt lines are skipped
- CSV export
- Sale numbers stay unique under concurrent settlements
"""

import csv
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from house_auction.auction.sale_log import SaleLog, SaleRecord


def _record(number, price=2500):
    return SaleRecord(
        sale_number=number,
        player_id=f"p{number}",
        player_name=f"Player {number}",
        team_id="t1",
        team_name="Falcons",
        price=price,
        timestamp=datetime(2026, 3, 1, 18, number)
    )


class TestSaleLog:
    """Test the JSONL sale log"""

    def test_empty_log(self, tmp_path):
        log = SaleLog(tmp_path / "sales.jsonl")

        assert log.load_all() == []
        assert log.count() == 0
        assert log.next_sale_number() == 1

    def test_append_and_load(self, tmp_path):
        log = SaleLog(tmp_path / "sales.jsonl")
        log.append(_record(1))
        log.append(_record(2, price=4000))

        records = log.load_all()

        assert [r.sale_number for r in records] == [1, 2]
        assert records[1].price == 4000
        assert log.next_sale_number() == 3

    def test_corrupt_line_skipped(self, tmp_path):
        path = tmp_path / "sales.jsonl"
        log = SaleLog(path)
        log.append(_record(1))
        with open(path, 'a', encoding='utf-8') as f:
            f.write("{not json\n")
        log.append(_record(2))

        assert [r.sale_number for r in log.load_all()] == [1, 2]

    def test_export_to_csv(self, tmp_path):
        log = SaleLog(tmp_path / "sales.jsonl")
        log.append(_record(1))

        rows_written = log.export_to_csv(tmp_path / "out" / "sales.csv")

        with open(tmp_path / "out" / "sales.csv", newline='', encoding='utf-8') as f:
            rows = list(csv.DictReader(f))
        assert rows_written == 1
        assert rows[0]['player_name'] == "Player 1"
        assert rows[0]['price'] == "2500"

    def test_record_sale_numbers_in_order(self, tmp_path):
        log = SaleLog(tmp_path / "sales.jsonl")
        log.append(_record(1))

        record = log.record_sale("p9", "Player 9", "t1", "Falcons", 3000, datetime(2026, 3, 1, 19, 0))

        assert record.sale_number == 2
        assert log.load_all()[-1].player_id == "p9"

    def test_concurrent_sales_get_distinct_numbers(self, tmp_path):
        """Verify racing settlements never share a sale number"""
        log = SaleLog(tmp_path / "sales.jsonl")

        def settle(n):
            return log.record_sale(f"p{n}", f"Player {n}", "t1", "Falcons", 2500, datetime.now())

        with ThreadPoolExecutor(max_workers=8) as pool:
            records = list(pool.map(settle, range(40)))

        assert sorted(r.sale_number for r in records) == list(range(1, 41))
        assert [r.sale_number for r in log.load_all()] == list(range(1, 41))
