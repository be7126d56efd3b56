"""
Custom exceptions for the SEMTAS benefit lifecycle service.
Provides structured error handling with proper HTTP status codes and messages.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
from fastapi import HTTPException, status

MONEY_LIMIT = Decimal("1E10")


class BusinessLogicError(Exception):
    """Base exception for business logic errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(BusinessLogicError):
    """Raised when input validation fails."""
    pass


class NotFoundError(BusinessLogicError):
    """Raised when a requested resource is not found."""
    pass


class ConflictError(BusinessLogicError):
    """Raised when there's a conflict with existing data."""
    pass


class TransicaoInvalidaError(ConflictError):
    """Raised when a status transition is not allowed from the current status."""
    pass


class ConcessaoError(BusinessLogicError):
    """Raised for concession-specific business logic errors."""
    pass


class PagamentoError(BusinessLogicError):
    """Raised for payment-specific business logic errors."""
    pass


class NotificacaoError(BusinessLogicError):
    """Raised for notification scheduling errors."""
    pass


class HistoricoImutavelError(BusinessLogicError):
    """Raised when something tries to update or delete a history row."""
    pass


def business_exception_to_http(exc: BusinessLogicError) -> HTTPException:
    """Convert business logic exceptions to appropriate HTTP exceptions."""

    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": exc.message, "type": "validation_error", **exc.details}
        )

    if isinstance(exc, NotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": exc.message, "type": "not_found", **exc.details}
        )

    if isinstance(exc, TransicaoInvalidaError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": exc.message, "type": "invalid_transition", **exc.details}
        )

    if isinstance(exc, ConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": exc.message, "type": "conflict", **exc.details}
        )

    if isinstance(exc, (ConcessaoError, PagamentoError, NotificacaoError)):
        return HTTPException(
            status_code=422,
            detail={"message": exc.message, "type": "business_rule_violation", **exc.details}
        )

    # Default to 500 for other business logic errors
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": exc.message, "type": "business_logic_error", **exc.details}
    )


class ErrorHandler:
    """Centralized validation utilities."""

    @staticmethod
    def validate_required_fields(data: Dict[str, Any], required_fields: list[str]) -> None:
        """Validate that all required fields are present and not None."""
        missing_fields = []
        for field in required_fields:
            if field not in data or data[field] is None:
                missing_fields.append(field)

        if missing_fields:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing_fields)}",
                {"missing_fields": missing_fields}
            )

    @staticmethod
    def validate_positive_integer(value: Any, field_name: str) -> int:
        """Validate that a value is a positive integer."""
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(
                f"{field_name} must be a positive integer",
                {"field": field_name, "value": value}
            )
        return value

    @staticmethod
    def validate_reason(value: Optional[str], field_name: str = "motivo") -> str:
        """Validate that a free-text reason is present and not blank."""
        if value is None or not str(value).strip():
            raise ValidationError(
                f"{field_name} is required",
                {"field": field_name}
            )
        return str(value).strip()

    @staticmethod
    def validate_money(value: Any, field_name: str = "valor") -> Decimal:
        """
        Validate a monetary amount.

        The amount must be strictly positive and carry at most two decimal
        digits. Floats are converted through ``str`` so that ``150.5`` stays
        ``Decimal('150.5')`` instead of its binary expansion.

        Returns:
            The amount quantized to two decimal places.
        """
        if isinstance(value, bool):
            raise ValidationError(f"{field_name} must be a number", {"field": field_name, "value": value})
        try:
            amount = value if isinstance(value, Decimal) else Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(
                f"{field_name} must be a number",
                {"field": field_name, "value": str(value)}
            )

        if not amount.is_finite():
            raise ValidationError(f"{field_name} must be a finite number", {"field": field_name, "value": str(value)})

        if amount <= 0:
            raise ValidationError(
                f"{field_name} must be greater than zero",
                {"field": field_name, "value": str(amount)}
            )

        # Numeric(12, 2) leaves ten integer digits
        if amount >= MONEY_LIMIT:
            raise ValidationError(
                f"{field_name} must be less than {MONEY_LIMIT:,.2f}",
                {"field": field_name, "value": str(amount)}
            )

        try:
            quantized = amount.quantize(Decimal("0.01"))
        except InvalidOperation:
            raise ValidationError(
                f"{field_name} is out of range",
                {"field": field_name, "value": str(amount)}
            )

        if amount != quantized:
            raise ValidationError(
                f"{field_name} must have at most two decimal places",
                {"field": field_name, "value": str(amount)}
            )

        return quantized

    @staticmethod
    def validate_cpf(value: Optional[str], field_name: str = "beneficiario_cpf") -> str:
        """Validate a CPF (formatted or digits only) and return its 11 digits."""
        digits = "".join(ch for ch in str(value or "") if ch.isdigit())
        if len(digits) != 11 or digits == digits[0] * 11:
            raise ValidationError(f"{field_name} must be a valid CPF", {"field": field_name})

        for size in (9, 10):
            total = sum(int(d) * w for d, w in zip(digits[:size], range(size + 1, 1, -1)))
            check = (total * 10) % 11 % 10
            if check != int(digits[size]):
                raise ValidationError(f"{field_name} must be a valid CPF", {"field": field_name})
        return digits
