"""Test fixtures and utilities."""

from pathlib import Path

import pytest

from receipt_ledger.state_store import StateStore

# Menu-style bill: bare integer prices, decimal summary
SAMPLE_THAI_BILL = (
    "Tom Yum Kung 265\n"
    "Pad Thai 180\n"
    "Thai Iced Tea 80\n"
    "SUBTOTAL 525.00\n"
    "TAX 36.75\n"
    "TOTAL 561.75"
)

# Till receipt: decimal prices with trailing OCR flags
SAMPLE_TILL_RECEIPT = """
GREEN GROCER MARKET
WHOLE MILK                    3.49 N
BREAD                         2.99
EGGS LARGE                    4.50 X
SUBTOTAL                     10.98
TAX                           0.77
TOTAL                        11.75
THANK YOU
"""

# Invoice with currency codes and header rows
SAMPLE_INVOICE = """
ACME DESIGN STUDIO
INVOICE NO. 2024-118
ISSUED TO: Keha Srisuk Co., Ltd
DESCRIPTION UNIT PRICE AMOUNT
Logo design 1,200.00 USD
Brand guidelines 800.00 USD
SUBTOTAL 2,000.00
VAT 7% 140.00
GRAND TOTAL 2,140.00
"""


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def sample_thai_bill() -> str:
    return SAMPLE_THAI_BILL


@pytest.fixture
def sample_till_receipt() -> str:
    return SAMPLE_TILL_RECEIPT


@pytest.fixture
def sample_invoice() -> str:
    return SAMPLE_INVOICE


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test_state.db"


@pytest.fixture
def store(temp_db) -> StateStore:
    """Fresh, empty state store."""
    return StateStore(temp_db)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
