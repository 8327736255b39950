"""Label conversion and filtering for Prometheus writes."""

from typing import Any, Mapping, Optional, Sequence, Union

LabelValue = Union[str, int, float, bool, None]
Labels = Mapping[str, LabelValue]


def convert_labels(labels: Optional[Labels]) -> dict[str, Any]:
    """Drop ``None`` values and turn booleans into ``"true"``/``"false"``."""
    converted: dict[str, Any] = {}
    for key, value in (labels or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            converted[key] = "true" if value else "false"
        else:
            converted[key] = value
    return converted


def filter_labels(label_names: Sequence[str], labels: Mapping[str, Any]) -> dict[str, str]:
    """Keep only declared label names.

    prometheus_client requires a value for every declared label, so declared
    names missing from ``labels`` are written as empty strings.
    """
    return {name: str(labels[name]) if name in labels else "" for name in label_names}
