from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_ORDERS_PER_PAGE = 6
DEFAULT_UPLOAD_MAX_BYTES = 5 * 1024 * 1024


@dataclass(slots=True)
class UploadConfig:
    url: str | None
    preset: str | None
    folder: str = "orderdesk-chat"
    timeout_sec: int = 30
    max_bytes: int = DEFAULT_UPLOAD_MAX_BYTES

    @property
    def enabled(self) -> bool:
        return bool(self.url)


@dataclass(slots=True)
class Settings:
    root_dir: Path
    data_dir: Path
    orders_db_path: Path
    chat_db_path: Path
    logs_dir: Path
    exports_dir: Path
    upload: UploadConfig
    operator_id: str | None = None
    operator_role: str | None = None
    db_timeout_sec: float = 10.0
    orders_per_page: int = DEFAULT_ORDERS_PER_PAGE

    @classmethod
    def load(cls, base_dir: Path | None = None) -> Settings:
        load_dotenv(override=False)

        root_env = os.getenv("ORDERDESK_HOME")
        root_dir = Path(root_env).expanduser().resolve() if root_env else (base_dir or Path.cwd()).resolve()

        data_dir = Path(os.getenv("ORDERDESK_DATA_DIR", root_dir / "data")).expanduser().resolve()
        orders_db_path = Path(os.getenv("ORDERDESK_DB_PATH", data_dir / "orders.sqlite3")).expanduser().resolve()
        chat_db_path = Path(
            os.getenv("ORDERDESK_CHAT_DB_PATH", data_dir / "conversations.sqlite3")
        ).expanduser().resolve()
        logs_dir = Path(os.getenv("ORDERDESK_LOG_DIR", root_dir / "logs")).expanduser().resolve()
        exports_dir = Path(os.getenv("ORDERDESK_EXPORT_DIR", root_dir / "exports")).expanduser().resolve()

        upload = UploadConfig(
            url=os.getenv("ORDERDESK_UPLOAD_URL") or None,
            preset=os.getenv("ORDERDESK_UPLOAD_PRESET") or None,
            folder=os.getenv("ORDERDESK_UPLOAD_FOLDER", "orderdesk-chat"),
            timeout_sec=int(os.getenv("ORDERDESK_UPLOAD_TIMEOUT_SEC", "30")),
            max_bytes=int(os.getenv("ORDERDESK_UPLOAD_MAX_BYTES", str(DEFAULT_UPLOAD_MAX_BYTES))),
        )

        return cls(
            root_dir=root_dir,
            data_dir=data_dir,
            orders_db_path=orders_db_path,
            chat_db_path=chat_db_path,
            logs_dir=logs_dir,
            exports_dir=exports_dir,
            upload=upload,
            operator_id=os.getenv("ORDERDESK_OPERATOR_ID") or None,
            operator_role=os.getenv("ORDERDESK_OPERATOR_ROLE") or None,
            db_timeout_sec=float(os.getenv("ORDERDESK_DB_TIMEOUT_SEC", "10")),
            orders_per_page=int(os.getenv("ORDERDESK_ORDERS_PER_PAGE", str(DEFAULT_ORDERS_PER_PAGE))),
        )

    def ensure_directories(self) -> None:
        for path in [self.root_dir, self.data_dir, self.logs_dir, self.exports_dir]:
            path.mkdir(parents=True, exist_ok=True)
        self.orders_db_path.parent.mkdir(parents=True, exist_ok=True)
        self.chat_db_path.parent.mkdir(parents=True, exist_ok=True)
