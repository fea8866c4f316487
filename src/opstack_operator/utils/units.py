""" Parsing for Go-style durations and Kubernetes quantities.
"""

import re

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1,
    "m": 60,
    "h": 3600,
}

_QUANTITY_UNITS = {
    "Ki": 1024,
    "Mi": 1024**2,
    "Gi": 1024**3,
    "Ti": 1024**4,
    "Pi": 1024**5,
    "k": 1000,
    "K": 1000,
    "M": 1000**2,
    "G": 1000**3,
    "T": 1000**4,
    "P": 1000**5,
    "m": 0.001,
}


def parse_duration(value, default=None):
    """ Convert a duration such as '10s', '5m' or '1h30m' to seconds.

    Args:
        value: Duration string, number of seconds, or None
        default: Returned when value is empty
    """
    if value is None or value == "":
        return default
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    if re.fullmatch(r"\d+(\.\d+)?", text):
        return float(text)

    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_SECONDS[match.group(2)]
        pos = match.end()

    if pos != len(text) or pos == 0:
        raise ValueError(f"invalid duration: {value!r}")
    return total


def parse_quantity(size_str):
    """ Convert k8s quantity string to a number for comparison.

    Args:
        size_str: Quantity like '10Gi', '500m', '1Ti'
    """
    if size_str is None:
        return None

    size_str = str(size_str).strip()
    if not size_str:
        raise ValueError("empty quantity")

    # Two-letter binary suffixes first so 'Mi' is not read as 'M'
    for suffix in sorted(_QUANTITY_UNITS, key=len, reverse=True):
        if size_str.endswith(suffix):
            return float(size_str[: -len(suffix)]) * _QUANTITY_UNITS[suffix]

    return float(size_str)
