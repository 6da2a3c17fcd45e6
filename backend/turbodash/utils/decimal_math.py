from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


MONEY_QUANT = Decimal("0.01")
PCT_QUANT = Decimal("0.000001")
HUNDRED = Decimal("100")


def as_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean values are not numeric amounts.")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal value: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite decimal value: {value!r}")
    return result


def money(value: Decimal | int | float | str) -> Decimal:
    return as_decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def pct(value: Decimal | int | float | str) -> Decimal:
    return as_decimal(value).quantize(PCT_QUANT, rounding=ROUND_HALF_UP)


def ratio_pct(numerator: Decimal | int, denominator: Decimal | int) -> Decimal | None:
    """Share of ``denominator`` as a percentage, or None when it is zero."""
    denominator = as_decimal(denominator)
    if denominator == 0:
        return None
    return pct((as_decimal(numerator) / denominator) * HUNDRED)
