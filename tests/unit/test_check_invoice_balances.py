"""
Unit tests for scripts/check_invoice_balances.py

The session, engine disposal and invoice loading are patched out.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from garage.schemas.invoice import Invoice, LineItem
from scripts import check_invoice_balances


@asynccontextmanager
async def _fake_session_scope():
    yield MagicMock()


@pytest.mark.asyncio
async def test_engine_is_disposed_when_loading_fails():
    close_db = AsyncMock()
    with patch.object(check_invoice_balances, "session_scope", _fake_session_scope), \
            patch.object(check_invoice_balances, "close_db", close_db), \
            patch.object(
                check_invoice_balances,
                "list_invoices",
                AsyncMock(side_effect=RuntimeError("connection refused")),
            ):
        with pytest.raises(RuntimeError):
            await check_invoice_balances.run()

    close_db.assert_awaited_once()


@pytest.mark.asyncio
async def test_exit_code_reflects_mismatches():
    stale = Invoice(id="inv-1", items=[LineItem(unit_price=10)], status="paid")
    close_db = AsyncMock()
    with patch.object(check_invoice_balances, "session_scope", _fake_session_scope), \
            patch.object(check_invoice_balances, "close_db", close_db), \
            patch.object(check_invoice_balances, "list_invoices", AsyncMock(return_value=[stale])):
        assert await check_invoice_balances.run() == 1

    close_db.assert_awaited_once()
