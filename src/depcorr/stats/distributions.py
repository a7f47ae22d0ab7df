"""
Self-contained tail probabilities for the Student t and standard normal.

The differential scan runs one Welch test per gene (~18,000 tests per
request), so the p-value path is written out explicitly rather than delegated:

    two-tailed p = I_x(df/2, 1/2),  x = df / (df + t²)          (df ≤ 100)
    two-tailed p = 2 · (1 - Φ(|t|))                              (df > 100)

Building blocks:
    - log_gamma: Lanczos approximation (g = 7, 9 coefficients) with the
      reflection formula Γ(x)Γ(1-x) = π / sin(πx) for x < 0.5
    - beta_continued_fraction: modified Lentz evaluation of the continued
      fraction for the incomplete beta integral (100 iterations, terms floored
      at 1e-30, convergence when a factor is within 1e-10 of 1)
    - regularized_incomplete_beta: log-space prefactor
      x^a (1-x)^b / B(a, b), then the continued fraction directly when
      x < (a+1)/(a+b+2), otherwise via the symmetry I_x(a,b) = 1 - I_{1-x}(b,a)
    - normal_cdf: Abramowitz & Stegun 7.1.26 rational approximation of erf
      (absolute error ≤ 1.5e-7)

References:
    - Lanczos, C. (1964). SIAM J. Numer. Anal. Ser. B 1:86-96.
    - Press et al. (2007). Numerical Recipes, 3rd ed., §6.1 and §6.4.
    - Abramowitz & Stegun (1964). Handbook of Mathematical Functions, 7.1.26.

Examples:
    >>> round(t_two_tailed_p(2.228, 10), 3)
    0.05
    >>> round(normal_cdf(1.96), 4)
    0.975
"""

from __future__ import annotations

import math

__all__ = [
    'log_gamma',
    'beta_continued_fraction',
    'regularized_incomplete_beta',
    'normal_cdf',
    't_two_tailed_p',
    'NORMAL_APPROX_DF',
]

# Above this many degrees of freedom the t tail is taken from the normal
NORMAL_APPROX_DF = 100

_LANCZOS_G = 7
_LANCZOS_COEFFICIENTS = (
    0.99999999999980993,
    676.5203681218851,
    -1259.1392167224028,
    771.32342877765313,
    -176.61502916214059,
    12.507343278686905,
    -0.13857109526572012,
    9.9843695780195716e-6,
    1.5056327351493116e-7,
)

_CF_MAX_ITERATIONS = 100
_CF_EPSILON = 1e-10
_CF_FLOOR = 1e-30

# Abramowitz & Stegun 7.1.26
_AS_P = 0.3275911
_AS_A = (0.254829592, -0.284496736, 1.421413741, -1.453152027, 1.061405429)


def log_gamma(x: float) -> float:
    """
    Natural log of the gamma function for real x > 0 (Lanczos, g = 7).

    Arguments below 0.5 go through the reflection formula, which recurses
    exactly once since 1 - x ≥ 0.5.
    """
    if x < 0.5:
        return math.log(math.pi / math.sin(math.pi * x)) - log_gamma(1.0 - x)

    x -= 1.0
    a = _LANCZOS_COEFFICIENTS[0]
    for i in range(1, _LANCZOS_G + 2):
        a += _LANCZOS_COEFFICIENTS[i] / (x + i)

    t = x + _LANCZOS_G + 0.5
    return 0.5 * math.log(2.0 * math.pi) + (x + 0.5) * math.log(t) - t + math.log(a)


def _floor(value: float) -> float:
    return _CF_FLOOR if abs(value) < _CF_FLOOR else value


def beta_continued_fraction(x: float, a: float, b: float) -> float:
    """Continued fraction for the incomplete beta function (modified Lentz)."""
    qab = a + b
    qap = a + 1.0
    qam = a - 1.0

    c = 1.0
    d = 1.0 / _floor(1.0 - qab * x / qap)
    h = d

    for m in range(1, _CF_MAX_ITERATIONS + 1):
        m2 = 2 * m

        # Even step
        aa = m * (b - m) * x / ((qam + m2) * (a + m2))
        d = 1.0 / _floor(1.0 + aa * d)
        c = _floor(1.0 + aa / c)
        h *= d * c

        # Odd step
        aa = -(a + m) * (qab + m) * x / ((a + m2) * (qap + m2))
        d = 1.0 / _floor(1.0 + aa * d)
        c = _floor(1.0 + aa / c)
        delta = d * c
        h *= delta

        if abs(delta - 1.0) < _CF_EPSILON:
            break

    return h


def regularized_incomplete_beta(x: float, a: float, b: float) -> float:
    """
    Regularized incomplete beta function I_x(a, b) for a, b > 0.

    Returns 0 for x ≤ 0 and 1 for x ≥ 1.
    """
    if x <= 0.0:
        return 0.0
    if x >= 1.0:
        return 1.0

    # x^a (1-x)^b / B(a, b), in log space to avoid overflow for large a
    log_front = (
        log_gamma(a + b) - log_gamma(a) - log_gamma(b)
        + a * math.log(x) + b * math.log1p(-x)
    )
    front = math.exp(log_front)

    if x < (a + 1.0) / (a + b + 2.0):
        return front * beta_continued_fraction(x, a, b) / a
    return 1.0 - front * beta_continued_fraction(1.0 - x, b, a) / b


def normal_cdf(x: float) -> float:
    """
    Standard normal CDF Φ(x) via the A&S 7.1.26 erf approximation.

    The tail is evaluated for |x| and reflected, so Φ(x) + Φ(-x) == 1 up
    to rounding and Φ(0) == 0.5.
    """
    if x == 0:
        return 0.5
    z = abs(x) / math.sqrt(2.0)
    t = 1.0 / (1.0 + _AS_P * z)
    a1, a2, a3, a4, a5 = _AS_A
    poly = ((((a5 * t + a4) * t + a3) * t + a2) * t + a1) * t
    upper_tail = 0.5 * poly * math.exp(-z * z)
    if x > 0:
        return 1.0 - upper_tail
    return upper_tail


def t_two_tailed_p(t: float, df: float) -> float:
    """
    Two-tailed p-value of a Student t statistic.

    Args:
        t: t statistic (sign ignored)
        df: degrees of freedom (may be fractional, e.g. Welch-Satterthwaite)

    Returns:
        p in [0, 1]; 1.0 for non-positive or NaN ``df`` and NaN ``t``
    """
    if math.isnan(t) or math.isnan(df) or df <= 0:
        return 1.0

    t = abs(t)
    if math.isinf(t):
        return 0.0

    if df > NORMAL_APPROX_DF:
        p = 2.0 * (1.0 - normal_cdf(t))
    else:
        p = regularized_incomplete_beta(df / (df + t * t), df / 2.0, 0.5)

    return min(1.0, max(0.0, p))
