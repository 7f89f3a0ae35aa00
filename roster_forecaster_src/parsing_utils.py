# roster_forecaster_src/parsing_utils.py

import argparse
from typing import Optional, List
import logging

from .forecasting_utils import DEFAULT_ROSTER, list_forecasters

logger = logging.getLogger(__name__)


def parse_csv_list(s: Optional[str]) -> List[str]:
    """
    Split a comma-separated CLI value into cleaned, non-empty items.

    Examples
    --------
    >>> parse_csv_list(" a.csv , b.csv ,")
    ['a.csv', 'b.csv']
    >>> parse_csv_list(None)
    []
    """
    if not s:
        return []
    return [item.strip() for item in s.split(",") if item.strip()]


def parse_model_list(s: Optional[str], config_key: Optional[str] = "models.roster",
                     args: Optional[argparse.Namespace] = None) -> List[str]:
    """
    Resolve the candidate roster from a CLI string, the configuration or the
    built-in default, in that order.

    Parameters
    ----------
    s : str, optional
        Comma-separated model names, e.g. "naive,seasonal_naive"
    config_key : str, optional
        Configuration key holding a list of model names
    args : argparse.Namespace, optional
        Unused; kept for call-site symmetry with other parsers

    Returns
    -------
    List[str]
        Model names in competition order, duplicates removed (first kept)

    Raises
    ------
    ValueError
        If a name is not a registered forecaster

    Examples
    --------
    >>> parse_model_list("naive,seasonal_naive")
    ['naive', 'seasonal_naive']
    """
    from .config_utils import get_config_value

    names = parse_csv_list(s)
    if not names and config_key:
        configured = get_config_value(config_key, None)
        if isinstance(configured, str):
            names = parse_csv_list(configured)
        elif configured:
            names = [str(x).strip() for x in configured if str(x).strip()]
    if not names:
        names = list(DEFAULT_ROSTER)

    available = list_forecasters()
    unknown = [n for n in names if n not in available]
    if unknown:
        raise ValueError(f"Unknown model(s) {unknown}. Available: {available}")

    ordered: List[str] = []
    for n in names:
        if n not in ordered:
            ordered.append(n)
    return ordered


def validate_positive_int(value: Optional[int], name: str) -> Optional[int]:
    """Return `value` unchanged if None or >= 1, else raise ValueError."""
    if value is None:
        return None
    if int(value) < 1:
        raise ValueError(f"{name} must be a positive integer, got {value}")
    return int(value)


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level specification.

    Parameters
    ----------
    log_level : str
        Logging level to validate

    Returns
    -------
    str
        Validated logging level

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper
