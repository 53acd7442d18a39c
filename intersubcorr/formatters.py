"""
Formatting helpers shared across reporting and plotting.

Table cell formatting policy:
- Estimates to 3 decimals by default
- 95% CI shown as "[low, high]" with matching precision
- p-values as "<.001" or ".XYZ" (no leading zero) in p columns
"""

import math


def format_pvalue_plain(p: float, threshold: float = 0.001) -> str:
    """Format p-value for plain text display (log messages)."""
    if p is None:
        raise ValueError("p-value is None")
    if p < threshold:
        return f'< {threshold}'
    return f'{p:.3f}'


def format_ci(ci_lower: float, ci_upper: float, precision: int = 3) -> str:
    """Format confidence interval as [low, high]."""
    fmt = f"{{:.{precision}f}}"
    return f"[{fmt.format(ci_lower)}, {fmt.format(ci_upper)}]"


def significance_stars(p_value: float) -> str:
    """Map p-value to significance stars for plots and tables."""
    if p_value is None or math.isnan(p_value):
        return ''
    if p_value < 0.001:
        return '***'
    if p_value < 0.01:
        return '**'
    if p_value < 0.05:
        return '*'
    return ''


def format_p_cell(p: float, threshold: float = 0.001, decimals: int = 3, leading_zero: bool = False) -> str:
    """
    Format p-value for table cells, following APA style.

    Returns "<.001" if p < threshold, else ".XYZ" (or "0.XYZ" if leading_zero=True).
    If p is NaN/None, returns "--".
    """
    if p is None or math.isnan(p):
        return "--"
    if p < threshold:
        return "<.001"
    val = f"{p:.{decimals}f}"
    return val if leading_zero else val[1:] if val.startswith('0') else val


__all__ = [
    'format_pvalue_plain',
    'format_ci',
    'significance_stars',
    'format_p_cell',
]
