# sheetstore/config.py
"""
Runtime configuration.

Settings come from environment variables (a local .env file is honoured).
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"


@dataclass(frozen=True)
class Settings:
    backend: str = "memory"             # "memory" or "sheets"
    sheet_id: Optional[str] = None
    access_token: Optional[str] = None  # bearer token for the Sheets API
    sheets_api_url: str = DEFAULT_SHEETS_API_URL

    products_table: str = "Products"
    variants_table: str = "Variants"
    orders_table: str = "Orders"
    order_items_table: str = "Order Items"
    commits_table: str = "Commits"

    low_stock_threshold: int = 2
    request_timeout: float = 10.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            backend=os.getenv("SHEETSTORE_BACKEND", "memory").lower(),
            sheet_id=os.getenv("GOOGLE_SHEET_ID") or None,
            access_token=os.getenv("GOOGLE_ACCESS_TOKEN") or None,
            sheets_api_url=os.getenv("SHEETS_API_URL", DEFAULT_SHEETS_API_URL),
            products_table=os.getenv("PRODUCTS_TABLE", "Products"),
            variants_table=os.getenv("VARIANTS_TABLE", "Variants"),
            orders_table=os.getenv("ORDERS_TABLE", "Orders"),
            order_items_table=os.getenv("ORDER_ITEMS_TABLE", "Order Items"),
            commits_table=os.getenv("COMMITS_TABLE", "Commits"),
            low_stock_threshold=int(os.getenv("LOW_STOCK_THRESHOLD", "2")),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "10")),
        )

    def validate(self) -> "Settings":
        if self.backend not in ("memory", "sheets"):
            raise ValueError(f"unknown SHEETSTORE_BACKEND: {self.backend}")
        if self.backend == "sheets":
            missing = [name for name, value in (
                ("GOOGLE_SHEET_ID", self.sheet_id),
                ("GOOGLE_ACCESS_TOKEN", self.access_token),
            ) if not value]
            if missing:
                raise ValueError(f"sheets backend needs {', '.join(missing)}")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env().validate()
