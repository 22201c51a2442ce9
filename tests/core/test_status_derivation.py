'''
Unit tests for the pure helpers of the fee ledger. No database needed.
'''
import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from campus_link_backend.database.db_enums import ObligationStatus
from campus_link_backend.services.fee_service import derive_obligation_status, generate_receipt_number


class TestDeriveObligationStatus:

    @pytest.mark.parametrize("amount_paid, billed, expected", [
        (Decimal("0"), Decimal("1000"), ObligationStatus.DUE),
        (Decimal("0.01"), Decimal("1000"), ObligationStatus.PARTIAL),
        (Decimal("400"), Decimal("1000"), ObligationStatus.PARTIAL),
        (Decimal("999.99"), Decimal("1000"), ObligationStatus.PARTIAL),
        (Decimal("1000"), Decimal("1000"), ObligationStatus.PAID),
    ])
    def test_status_follows_amounts(self, amount_paid, billed, expected):
        assert derive_obligation_status(amount_paid, billed) == expected

    def test_never_reports_overdue(self):
        """Overdue is set by the sweep only; amounts alone never produce it."""
        results = {
            derive_obligation_status(Decimal(paid), Decimal("100"))
            for paid in range(0, 101, 10)
        }
        assert ObligationStatus.OVERDUE not in results


class TestReceiptNumber:

    def test_format(self):
        moment = datetime(2025, 9, 15, 8, 30, 5, tzinfo=timezone.utc)
        receipt = generate_receipt_number(moment)
        print(f"Generated receipt: {receipt}")
        assert re.fullmatch(r"RCP-20250915083005-[0-9A-F]{8}", receipt)

    def test_receipts_differ_within_the_same_second(self):
        moment = datetime(2025, 9, 15, 8, 30, 5, tzinfo=timezone.utc)
        receipts = {generate_receipt_number(moment) for _ in range(50)}
        assert len(receipts) == 50
