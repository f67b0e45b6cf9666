from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from orderdesk.services import export_orders


def test_csv_export_has_one_row_per_item(order_repository, make_order, tmp_path: Path) -> None:  # noqa: ANN001
    make_order("order-a")
    make_order("order-b", items=[])

    files = export_orders(order_repository, ["csv"], tmp_path / "exports")

    assert [path.name for path in files] == ["orders_export.csv"]
    df = pd.read_csv(files[0], encoding="utf-8-sig")
    assert len(df) == 3
    assert sorted(df["order_id"].unique()) == ["order-a", "order-b"]
    assert set(df.loc[df["order_id"] == "order-a", "item_name"]) == {"Coffee mug", "Tea sampler"}
    assert df.loc[df["order_id"] == "order-b", "item_name"].isna().all()
    assert df["status_history"].str.startswith("confirmation@").all()


def test_unknown_format_is_rejected(order_repository, tmp_path: Path) -> None:  # noqa: ANN001
    with pytest.raises(ValueError):
        export_orders(order_repository, ["pdf"], tmp_path)
