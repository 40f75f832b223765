"""FSRS-5 parameter configuration.

:class:`FSRSParameters` bundles the seventeen model weights with the tuning
knobs of the scheduler.  Instances are validated on construction and never
change afterwards; use :meth:`FSRSParameters.replace` to derive an updated
configuration.  Replacing parameters only affects cards scheduled afterwards.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, Tuple, Union

from fsrs_core.errors import InvalidParameters

logger = logging.getLogger(__name__)

WEIGHT_COUNT = 17
# Upper bound, in days, for any interval or step a parameter set may ask for.
# Due dates stay below datetime.max for review times up to year 7000.
MAX_INTERVAL_DAYS = 1_000_000
DEFAULT_WEIGHTS: Tuple[float, ...] = (
    0.4072,
    1.1829,
    3.1262,
    15.4722,
    7.2102,
    0.5316,
    1.0651,
    0.0234,
    1.616,
    0.1544,
    1.0824,
    1.9813,
    0.0953,
    0.2975,
    2.2042,
    0.2407,
    2.9466,
)

# camelCase keys found in older configuration records.
_CAMEL_CASE_KEYS = {
    "requestRetention": "request_retention",
    "maximumInterval": "maximum_interval",
    "easyBonus": "easy_bonus",
    "hardInterval": "hard_interval",
    "newInterval": "new_interval",
    "graduatingInterval": "graduating_interval",
    "easyInterval": "easy_interval",
    "learningSteps": "learning_steps",
    "relearningSteps": "relearning_steps",
}


def _steps(value: Any, name: str) -> Tuple[float, ...]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise InvalidParameters(f"{name} must be a sequence of minutes")
    try:
        steps = tuple(float(step) for step in value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameters(f"{name} must contain numbers") from exc
    if not steps:
        raise InvalidParameters(f"{name} must define at least one step")
    if any(not math.isfinite(step) or step <= 0 for step in steps):
        raise InvalidParameters(f"{name} must be positive minute values")
    if any(step > MAX_INTERVAL_DAYS * 1440 for step in steps):
        raise InvalidParameters(f"{name} must not exceed {MAX_INTERVAL_DAYS} days")
    return steps


@dataclass(frozen=True)
class FSRSParameters:
    """Weights ``w0``..``w16`` plus scheduler tuning constants.

    ``learning_steps`` and ``relearning_steps`` are expressed in minutes.
    """

    w0: float = DEFAULT_WEIGHTS[0]
    w1: float = DEFAULT_WEIGHTS[1]
    w2: float = DEFAULT_WEIGHTS[2]
    w3: float = DEFAULT_WEIGHTS[3]
    w4: float = DEFAULT_WEIGHTS[4]
    w5: float = DEFAULT_WEIGHTS[5]
    w6: float = DEFAULT_WEIGHTS[6]
    w7: float = DEFAULT_WEIGHTS[7]
    w8: float = DEFAULT_WEIGHTS[8]
    w9: float = DEFAULT_WEIGHTS[9]
    w10: float = DEFAULT_WEIGHTS[10]
    w11: float = DEFAULT_WEIGHTS[11]
    w12: float = DEFAULT_WEIGHTS[12]
    w13: float = DEFAULT_WEIGHTS[13]
    w14: float = DEFAULT_WEIGHTS[14]
    w15: float = DEFAULT_WEIGHTS[15]
    w16: float = DEFAULT_WEIGHTS[16]
    request_retention: float = 0.9
    maximum_interval: int = 36500
    easy_bonus: float = 1.3
    hard_interval: float = 1.2
    new_interval: float = 0.0
    graduating_interval: float = 1.0
    easy_interval: float = 4.0
    learning_steps: Tuple[float, ...] = (1.0, 10.0)
    relearning_steps: Tuple[float, ...] = (10.0,)

    def __post_init__(self) -> None:
        for item in fields(self):
            if item.name in ("learning_steps", "relearning_steps"):
                continue
            value = getattr(self, item.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidParameters(f"{item.name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise InvalidParameters(f"{item.name} must be finite")
        if self.w6 <= 0:
            raise InvalidParameters("w6 must be positive to keep lapse stability positive")
        if not 0 < self.request_retention < 1:
            raise InvalidParameters("request_retention must lie strictly between 0 and 1")
        if (
            isinstance(self.maximum_interval, bool)
            or int(self.maximum_interval) != self.maximum_interval
            or not 1 <= self.maximum_interval <= MAX_INTERVAL_DAYS
        ):
            raise InvalidParameters(
                f"maximum_interval must be an integer between 1 and {MAX_INTERVAL_DAYS} days"
            )
        for name in ("easy_bonus", "hard_interval", "graduating_interval", "easy_interval"):
            if getattr(self, name) <= 0:
                raise InvalidParameters(f"{name} must be positive")
        for name in ("graduating_interval", "easy_interval"):
            if getattr(self, name) > MAX_INTERVAL_DAYS:
                raise InvalidParameters(f"{name} must not exceed {MAX_INTERVAL_DAYS} days")
        if self.new_interval < 0:
            raise InvalidParameters("new_interval must not be negative")
        object.__setattr__(self, "maximum_interval", int(self.maximum_interval))
        object.__setattr__(self, "learning_steps", _steps(self.learning_steps, "learning_steps"))
        object.__setattr__(
            self, "relearning_steps", _steps(self.relearning_steps, "relearning_steps")
        )

    @property
    def weights(self) -> Tuple[float, ...]:
        return tuple(getattr(self, f"w{index}") for index in range(WEIGHT_COUNT))

    def replace(self, **changes: Any) -> "FSRSParameters":
        """Return a validated copy with *changes* applied.

        ``self`` is left untouched when the changes are rejected.
        """

        known = {item.name for item in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise InvalidParameters(f"Unknown parameter(s): {', '.join(unknown)}")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["learning_steps"] = list(self.learning_steps)
        payload["relearning_steps"] = list(self.relearning_steps)
        return payload

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "FSRSParameters":
        """Build parameters from a configuration record.

        Missing keys keep their defaults.  The weights may be given one by one
        (``w0``..``w16``) or as a ``weights`` list of seventeen numbers.
        """

        values: Dict[str, Any] = {}
        for key, value in payload.items():
            values[_CAMEL_CASE_KEYS.get(key, key)] = value
        weights = values.pop("weights", None)
        if weights is not None:
            weights = list(weights)
            if len(weights) != WEIGHT_COUNT:
                raise InvalidParameters(
                    f"weights must contain {WEIGHT_COUNT} values, got {len(weights)}"
                )
            for index, weight in enumerate(weights):
                values.setdefault(f"w{index}", weight)
        return DEFAULT_PARAMETERS.replace(**values)


DEFAULT_PARAMETERS = FSRSParameters()


def load_parameters(path: Union[str, Path]) -> FSRSParameters:
    """Load a parameter file written as a JSON object."""

    path = Path(path)
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, Mapping):
        raise InvalidParameters(f"{path} does not contain a JSON object")
    logger.debug("Loaded FSRS parameters from %s", path)
    return FSRSParameters.from_mapping(payload)


__all__ = [
    "DEFAULT_PARAMETERS",
    "DEFAULT_WEIGHTS",
    "FSRSParameters",
    "MAX_INTERVAL_DAYS",
    "WEIGHT_COUNT",
    "load_parameters",
]
