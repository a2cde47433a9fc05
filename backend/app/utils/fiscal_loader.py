import os
from decimal import Decimal
from pathlib import Path

import yaml

_DEFAULT_PATH = Path(__file__).resolve().parents[3] / "fiscal_constants"


def _constants_path() -> Path:
    """Read FISCAL_CONSTANTS_PATH at call time (supports env var changes in tests)."""
    return Path(os.getenv("FISCAL_CONSTANTS_PATH", str(_DEFAULT_PATH)))


# Use a simple dict cache keyed by (year, path) to support test env var overrides
_cache: dict[tuple, dict] = {}


def load_fiscal_constants(year: int) -> dict:
    """Load fiscal constants for the given year, falling back to the latest available."""
    path = _constants_path()
    cache_key = (year, str(path))
    if cache_key in _cache:
        return _cache[cache_key]

    target = path / f"{year}.yaml"
    if target.exists():
        with open(target) as f:
            result = yaml.safe_load(f)
            _cache[cache_key] = result
            return result

    # Fallback: the most recent year <= requested year
    available = sorted(
        [int(p.stem) for p in path.glob("*.yaml") if p.stem.isdigit()], reverse=True
    )
    for y in available:
        if y <= year:
            with open(path / f"{y}.yaml") as f:
                result = yaml.safe_load(f)
                _cache[cache_key] = result
                return result

    raise FileNotFoundError(f"No fiscal constants found for year {year} in {path}")


def get_vat_constants(year: int) -> dict:
    return load_fiscal_constants(year).get("vat", {})


def get_valid_vat_rates(year: int) -> list[Decimal]:
    return [Decimal(str(rate)) for rate in get_vat_constants(year).get("rates", [])]


def get_numbering_prefixes(year: int) -> dict:
    return load_fiscal_constants(year).get("numbering", {})


def get_invoicing_constants(year: int) -> dict:
    return load_fiscal_constants(year).get("invoicing", {})


def get_reporting_constants(year: int) -> dict:
    return load_fiscal_constants(year).get("reporting", {})


def get_withholding_constants(year: int) -> dict:
    return load_fiscal_constants(year).get("withholding", {})
