"""CSV export of the order listing."""

from __future__ import annotations

import csv
from decimal import Decimal
from typing import Any, Iterable, Mapping, TextIO

CSV_HEADER = ["Customer Name", "Order ID", "Payment Method", "Date", "Status", "Amount"]


def write_orders_csv(rows: Iterable[Mapping[str, Any]], stream: TextIO) -> int:
    """Write one CSV line per record to ``stream``; return the row count."""
    writer = csv.writer(stream)
    writer.writerow(CSV_HEADER)
    count = 0
    for row in rows:
        amount = Decimal(str(row.get("product_price") or 0)) * int(row.get("quantity") or 0)
        writer.writerow(
            [
                row.get("customer_name", ""),
                str(row.get("id", "")),
                row.get("payment_method", ""),
                row.get("order_date") or "-",
                row.get("status", ""),
                f"${amount:.2f}",
            ]
        )
        count += 1
    return count
