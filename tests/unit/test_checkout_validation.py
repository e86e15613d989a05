"""
Checkout input validation and the simulated payment gateway.
"""
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from storefront.core.exceptions import CheckoutValidationError, OutOfStockError
from storefront.services.cart_service import CartLine
from storefront.services.checkout import (
    CheckoutService,
    validate_payment_method,
    validate_shipping_address,
)
from storefront.services.payment import SimulatedPaymentGateway, payment_method_label
from storefront.services.product_store import StockStatus


class TestShippingAddress:

    def test_trims_and_returns_address(self):
        assert validate_shipping_address("  12 Harbour Road, Busan  ") == "12 Harbour Road, Busan"

    @pytest.mark.parametrize("address", [None, "", "   ", 42])
    def test_missing_address_rejected(self, address):
        with pytest.raises(CheckoutValidationError) as exc_info:
            validate_shipping_address(address)
        assert exc_info.value.details["field"] == "shipping_address"

    def test_too_short_rejected(self):
        with pytest.raises(CheckoutValidationError, match="at least 10"):
            validate_shipping_address("Short St")

    def test_too_long_rejected(self):
        with pytest.raises(CheckoutValidationError, match="at most 500"):
            validate_shipping_address("A" * 501)

    def test_length_bounds_are_inclusive(self):
        assert validate_shipping_address("1234567890") == "1234567890"
        assert len(validate_shipping_address("B" * 500)) == 500

    def test_punctuation_only_rejected(self):
        with pytest.raises(CheckoutValidationError, match="letters or digits"):
            validate_shipping_address("-----,,,,.....")

    def test_hangul_address_accepted(self):
        address = "서울특별시 강남구 테헤란로 123"
        assert validate_shipping_address(address) == address


class TestPaymentMethod:

    @pytest.mark.parametrize("key,label", [
        ("credit_card", "Credit Card"),
        ("KAKAO_PAY", "KakaoPay"),
        (" paypal ", "PayPal"),
    ])
    def test_known_methods(self, key, label):
        assert validate_payment_method(key)[1] == label

    @pytest.mark.parametrize("key", [None, "", "bitcoin"])
    def test_unknown_methods_rejected(self, key):
        with pytest.raises(CheckoutValidationError) as exc_info:
            validate_payment_method(key)
        assert exc_info.value.details["field"] == "payment_method"

    def test_label_lookup_for_unknown_key(self):
        assert payment_method_label("cash") is None


class TestSimulatedPayment:

    @pytest.mark.asyncio
    async def test_positive_amount_and_known_method_succeeds(self):
        result = await SimulatedPaymentGateway().process_payment(Decimal("2500.00"), "credit_card", 7)
        assert result.success is True
        assert result.method_label == "Credit Card"
        assert result.transaction_id.startswith("TXN_")
        assert result.transaction_id.endswith("_7")

    @pytest.mark.asyncio
    async def test_zero_amount_declined(self):
        result = await SimulatedPaymentGateway().process_payment(Decimal("0"), "credit_card", 7)
        assert result.success is False
        assert result.transaction_id is None

    @pytest.mark.asyncio
    async def test_unknown_method_declined(self):
        result = await SimulatedPaymentGateway().process_payment(Decimal("10"), "barter", 7)
        assert result.success is False


class TestCheckoutShortCircuits:
    """Validation failures must not reach the database or the engine."""

    @pytest.mark.asyncio
    async def test_bad_address_touches_nothing(self, mock_db):
        engine = AsyncMock()
        service = CheckoutService(engine=engine)

        with pytest.raises(CheckoutValidationError):
            await service.checkout(mock_db, 1, "short", "credit_card")

        mock_db.execute.assert_not_awaited()
        engine.place_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_payment_method_touches_nothing(self, mock_db):
        engine = AsyncMock()
        service = CheckoutService(engine=engine)

        with pytest.raises(CheckoutValidationError):
            await service.checkout(mock_db, 1, "12 Harbour Road, Busan", "iou")

        mock_db.execute.assert_not_awaited()
        engine.place_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_precheck_reports_sold_out(self, mock_db, monkeypatch):
        monkeypatch.setattr(
            "storefront.services.checkout.ProductStore.check_stock",
            AsyncMock(return_value=StockStatus(available=False, stock=0)),
        )
        line = CartLine(id=1, product_id=5, quantity=1, product_name="Lamp",
                        unit_price=Decimal("10.00"), stock=0)

        with pytest.raises(OutOfStockError, match="Lamp is sold out") as exc_info:
            await CheckoutService.precheck_stock(mock_db, [line])
        assert exc_info.value.product_id == 5

    @pytest.mark.asyncio
    async def test_precheck_reports_current_stock(self, mock_db, monkeypatch):
        monkeypatch.setattr(
            "storefront.services.checkout.ProductStore.check_stock",
            AsyncMock(return_value=StockStatus(available=True, stock=2)),
        )
        line = CartLine(id=1, product_id=5, quantity=3, product_name="Lamp",
                        unit_price=Decimal("10.00"), stock=2)

        with pytest.raises(OutOfStockError, match="current stock: 2") as exc_info:
            await CheckoutService.precheck_stock(mock_db, [line])
        assert exc_info.value.details["requested_qty"] == 3
        assert exc_info.value.details["available_qty"] == 2
