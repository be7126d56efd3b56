from decimal import Decimal

import pytest

from semtas.core.exceptions import (
    ErrorHandler, ValidationError, NotFoundError, TransicaoInvalidaError, PagamentoError,
    business_exception_to_http,
)


@pytest.mark.unit
class TestMoney:

    @pytest.mark.parametrize("value,expected", [
        ("150.50", Decimal("150.50")),
        (150.5, Decimal("150.50")),
        (Decimal("10"), Decimal("10.00")),
        ("99.990", Decimal("99.99")),
        ("9999999999.99", Decimal("9999999999.99")),
    ])
    def test_accepts_two_decimal_places(self, value, expected):
        assert ErrorHandler.validate_money(value) == expected

    @pytest.mark.parametrize("value", [150.555, "0", "-1.00", "abc", "NaN", True, None])
    def test_rejects_invalid_amounts(self, value):
        with pytest.raises(ValidationError):
            ErrorHandler.validate_money(value)

    @pytest.mark.parametrize("value", ["1E+30", "123456789012.00", "10000000000.00"])
    def test_rejects_amounts_beyond_column_precision(self, value):
        with pytest.raises(ValidationError) as exc:
            ErrorHandler.validate_money(value)
        assert exc.value.details["field"] == "valor"


@pytest.mark.unit
class TestCpf:

    def test_formatted_cpf_is_normalized(self):
        assert ErrorHandler.validate_cpf("529.982.247-25") == "52998224725"

    @pytest.mark.parametrize("cpf", ["52998224724", "11111111111", "123", "", None])
    def test_invalid_cpf_rejected(self, cpf):
        with pytest.raises(ValidationError):
            ErrorHandler.validate_cpf(cpf)


@pytest.mark.unit
def test_reason_must_not_be_blank():
    with pytest.raises(ValidationError):
        ErrorHandler.validate_reason("  ")
    assert ErrorHandler.validate_reason(" doc pendente ") == "doc pendente"


@pytest.mark.unit
def test_positive_integer_rejects_bool():
    with pytest.raises(ValidationError):
        ErrorHandler.validate_positive_integer(True, "id")


@pytest.mark.unit
@pytest.mark.parametrize("exc,code,kind", [
    (ValidationError("x"), 400, "validation_error"),
    (NotFoundError("x"), 404, "not_found"),
    (TransicaoInvalidaError("x"), 409, "invalid_transition"),
    (PagamentoError("x"), 422, "business_rule_violation"),
])
def test_business_exception_mapping(exc, code, kind):
    http_exc = business_exception_to_http(exc)
    assert http_exc.status_code == code
    assert http_exc.detail["type"] == kind


@pytest.mark.unit
def test_required_fields():
    with pytest.raises(ValidationError) as exc_info:
        ErrorHandler.validate_required_fields({"motivo": None, "valor": 1}, ["motivo", "valor", "usuario_id"])
    assert exc_info.value.details["missing_fields"] == ["motivo", "usuario_id"]
