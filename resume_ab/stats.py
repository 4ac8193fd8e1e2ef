from dataclasses import dataclass
import math

from .errors import ValidationError

MIN_SAMPLE_SIZE = 10
NULL_PROPORTION = 0.5  # null hypothesis: 50% response rate
ALPHA = 0.05


@dataclass(frozen=True)
class SignificanceResult:
    is_significant: bool
    p_value: float


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round halves away from zero for positive numbers (2.5 -> 3),
    unlike the built-in round() which rounds halves to even.
    """
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if digits == 0 else rounded


def _check_count(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    if value < 0:
        raise ValidationError(f"{name} must not be negative, got {value!r}")


def percentage(count: int, total: int) -> float:
    """
    count / total as a percentage rounded to 2 decimals.
    A total of 0 gives 0.0.
    """
    _check_count("count", count)
    _check_count("total", total)
    if count > total:
        raise ValidationError(f"count ({count}) cannot exceed total ({total})")
    if total == 0:
        return 0.0
    return round_half_up(count / total * 100, 2)


def normal_cdf(z: float) -> float:
    """
    Cumulative distribution function for a standard normal variable.
    Abramowitz & Stegun polynomial approximation (error < 7.5e-8).
    """
    t = 1 / (1 + 0.2316419 * abs(z))
    d = 0.3989423 * math.exp(-z * z / 2)
    p = d * t * (0.3193815 + t * (-0.3565638 + t * (1.781478 + t * (-1.821256 + t * 1.330274))))
    return 1 - p if z > 0 else p


def significance(sample_size: int, successes: int) -> SignificanceResult:
    """
    One-proportion z-test of the observed success rate against a fixed
    50% baseline. Returns the two-sided p-value rounded to 4 decimals.

    Samples smaller than MIN_SAMPLE_SIZE are never significant and
    report p = 1.0.
    """
    _check_count("sample_size", sample_size)
    _check_count("successes", successes)
    if successes > sample_size:
        raise ValidationError(
            f"successes ({successes}) cannot exceed sample_size ({sample_size})"
        )

    if sample_size < MIN_SAMPLE_SIZE:
        return SignificanceResult(is_significant=False, p_value=1.0)

    p_hat = successes / sample_size
    se = math.sqrt(NULL_PROPORTION * (1 - NULL_PROPORTION) / sample_size)
    z = (p_hat - NULL_PROPORTION) / se

    # Two-sided p-value
    p_value = 2 * normal_cdf(-abs(z))

    return SignificanceResult(
        is_significant=p_value < ALPHA and sample_size >= MIN_SAMPLE_SIZE,
        p_value=round_half_up(p_value, 4),
    )
