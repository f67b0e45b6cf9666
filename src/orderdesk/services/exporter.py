from __future__ import annotations

from pathlib import Path

import pandas as pd

from orderdesk.core.db import OrderRepository

EXPORT_FORMATS = ("csv", "xlsx")


def export_orders(repository: OrderRepository, formats: list[str], out_dir: Path) -> list[Path]:
    unknown = [item for item in formats if item not in EXPORT_FORMATS]
    if unknown:
        raise ValueError(f"Unsupported export formats: {unknown}")

    out_dir.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(
        repository.fetch_export_rows(),
        columns=[
            "order_id",
            "customer_id",
            "customer_email",
            "status",
            "order_date",
            "delivery_address",
            "payment_method",
            "total_amount",
            "status_history",
            "item_name",
            "quantity",
            "unit_price",
        ],
    )

    created_files: list[Path] = []
    if "csv" in formats:
        csv_path = (out_dir / "orders_export.csv").resolve()
        df.to_csv(csv_path, index=False, encoding="utf-8-sig")
        created_files.append(csv_path)

    if "xlsx" in formats:
        xlsx_path = (out_dir / "orders_export.xlsx").resolve()
        with pd.ExcelWriter(xlsx_path, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="orders")
        created_files.append(xlsx_path)

    return created_files
