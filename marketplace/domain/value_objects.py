"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. They are interchangeable when their values are equal.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, ClassVar, Self

from marketplace.domain.base import ValueObject
from marketplace.domain.exceptions import (
    CurrencyMismatchError,
    InvalidLineItemError,
    InvalidQuantityError,
    NegativeMoneyError,
    ValidationError,
)

DEFAULT_CURRENCY = "COP"


# ============================================================================
# Money Value Object
# ============================================================================


@dataclass(frozen=True)
class Money(ValueObject):
    """Represents monetary value with currency.

    Money is stored in the smallest currency unit (two fraction digits)
    to avoid floating-point precision issues.

    Attributes:
        amount_cents: Amount in smallest currency unit.
        currency: ISO 4217 currency code.
    """

    amount_cents: int
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        """Validate money constraints."""
        if isinstance(self.amount_cents, bool) or not isinstance(self.amount_cents, int):
            raise TypeError(f"Money amount must be an integer, got {type(self.amount_cents).__name__}")
        if self.amount_cents < 0:
            raise NegativeMoneyError(self.amount_cents)
        object.__setattr__(self, "currency", self.currency.upper())

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> Self:
        """Create zero amount money.

        Args:
            currency: Currency code.

        Returns:
            Money with zero amount.
        """
        return cls(amount_cents=0, currency=currency)

    @classmethod
    def from_decimal(cls, amount: Decimal | str, currency: str = DEFAULT_CURRENCY) -> Self:
        """Create money from a decimal amount in major units.

        Args:
            amount: Decimal amount (e.g. Decimal("12.50")).
            currency: Currency code.

        Returns:
            Money instance.
        """
        cents = int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return cls(amount_cents=cents, currency=currency)

    def to_decimal(self) -> Decimal:
        """Convert to decimal amount in major units."""
        return Decimal(self.amount_cents) / 100

    def __add__(self, other: "Money") -> "Money":
        """Add two money amounts.

        Raises:
            CurrencyMismatchError: If currencies don't match.
        """
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)
        return Money(
            amount_cents=self.amount_cents + other.amount_cents,
            currency=self.currency,
        )

    def __sub__(self, other: "Money") -> "Money":
        """Subtract money amounts.

        Raises:
            CurrencyMismatchError: If currencies don't match.
            NegativeMoneyError: If result would be negative.
        """
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)
        return Money(
            amount_cents=self.amount_cents - other.amount_cents,
            currency=self.currency,
        )

    def __mul__(self, quantity: int) -> "Money":
        """Multiply money by an integer quantity."""
        return Money(
            amount_cents=self.amount_cents * quantity,
            currency=self.currency,
        )

    def __rmul__(self, quantity: int) -> "Money":
        return self.__mul__(quantity)

    def __str__(self) -> str:
        """Return formatted string representation (e.g. '$125000.00 COP')."""
        symbol = {"USD": "$", "COP": "$", "MXN": "$", "EUR": "€", "GBP": "£"}.get(self.currency, "")
        return f"{symbol}{self.to_decimal():.2f} {self.currency}"

    def is_zero(self) -> bool:
        """Check if amount is zero."""
        return self.amount_cents == 0


# ============================================================================
# Line Item
# ============================================================================


@dataclass(frozen=True)
class LineItem(ValueObject):
    """One product-quantity-price tuple within an order.

    The unit price is captured when the item is created and is immune to
    later catalog price changes. The subtotal is derived, so it always
    equals quantity times unit price.

    Attributes:
        product_id: Catalog product referenced by this line.
        quantity: Ordered units, at least one.
        unit_price: Price per unit at order time.
    """

    product_id: int
    quantity: int
    unit_price: Money

    def __post_init__(self) -> None:
        """Validate line item constraints."""
        if isinstance(self.product_id, bool) or not isinstance(self.product_id, int) or self.product_id <= 0:
            raise InvalidLineItemError(self.product_id, "product id must be a positive integer")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity < 1:
            raise InvalidQuantityError(self.quantity)

    @classmethod
    def create(
        cls,
        product_id: int,
        quantity: int,
        unit_price_cents: int,
        currency: str = DEFAULT_CURRENCY,
    ) -> Self:
        """Build a line item from raw values.

        Raises:
            InvalidQuantityError: If quantity is not positive.
            NegativeMoneyError: If the unit price is negative.
        """
        return cls(
            product_id=product_id,
            quantity=quantity,
            unit_price=Money(amount_cents=unit_price_cents, currency=currency),
        )

    @property
    def subtotal(self) -> Money:
        """Quantity multiplied by unit price."""
        return self.unit_price * self.quantity

    def with_quantity(self, quantity: int) -> "LineItem":
        """Return a copy of this line with a new quantity.

        Raises:
            InvalidQuantityError: If quantity is not positive.
        """
        return LineItem(product_id=self.product_id, quantity=quantity, unit_price=self.unit_price)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price.amount_cents,
            "subtotal_cents": self.subtotal.amount_cents,
            "currency": self.unit_price.currency,
        }


# ============================================================================
# Payment Method & Payloads
# ============================================================================


class PaymentMethod(str, Enum):
    """Supported payment methods."""

    STRIPE = "stripe"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"

    @property
    def uses_gateway(self) -> bool:
        """Whether settlement calls an external gateway."""
        return self != PaymentMethod.BANK_TRANSFER


@dataclass(frozen=True)
class PaymentPayload(ValueObject):
    """Opaque, method-tagged payment details supplied by the caller.

    Subclasses declare their method; use ``PaymentPayload.from_dict`` to
    parse the wire shape ``{"method": "...", ...}``.
    """

    method: ClassVar[PaymentMethod]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentPayload":
        """Parse a payload dictionary into its method-specific type.

        Raises:
            ValidationError: If the method tag is missing or unknown.
        """
        raw_method = data.get("method")
        try:
            method = PaymentMethod(raw_method)
        except ValueError:
            raise ValidationError(
                f"Unsupported payment method: {raw_method!r}",
                details={"method": raw_method},
            ) from None

        if method == PaymentMethod.STRIPE:
            return StripePayload(
                payment_method_id=data.get("payment_method_id"),
                description=data.get("description"),
            )
        if method == PaymentMethod.PAYPAL:
            return PayPalPayload(paypal_order_id=data.get("paypal_order_id"))
        return BankTransferPayload(proof=data.get("proof"))


@dataclass(frozen=True)
class StripePayload(PaymentPayload):
    """Card payment through Stripe.

    Attributes:
        payment_method_id: Stripe payment method token (``pm_...``).
        description: Optional statement description.
    """

    method: ClassVar[PaymentMethod] = PaymentMethod.STRIPE

    payment_method_id: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class PayPalPayload(PaymentPayload):
    """PayPal checkout approved by the buyer.

    Attributes:
        paypal_order_id: PayPal order approved on the client side.
    """

    method: ClassVar[PaymentMethod] = PaymentMethod.PAYPAL

    paypal_order_id: str | None = None


@dataclass(frozen=True)
class BankTransferPayload(PaymentPayload):
    """Bank transfer with an optional proof-of-transfer reference."""

    method: ClassVar[PaymentMethod] = PaymentMethod.BANK_TRANSFER

    proof: str | None = field(default=None)
