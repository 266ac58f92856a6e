"""
Chart view preferences.

Series visibility for the analytics charts is one immutable record keyed
by metric name.  It is never mutated; ``reduce_preferences`` returns a new
record for each action:

    prefs = ChartPreferences.default()
    prefs = reduce_preferences(prefs, {"type": "toggle", "metric": "er"})
    prefs = reduce_preferences(prefs, {"type": "solo", "metric": "manning"})

Action types:
    toggle  flip one metric
    show    make one metric visible
    hide    hide one metric
    solo    show only the given metric
    reset   everything visible again

The trend endpoint reads preferences from ``?series=manning,er`` via
``from_query`` and drops hidden series with ``apply_to_series``.
"""

from dataclasses import dataclass, field
from types import MappingProxyType

from branchvisit.core.exceptions import ValidationError

CHART_METRICS = ("manning", "attrition", "er", "nonVendor", "cwt")

ACTION_TYPES = ("toggle", "show", "hide", "solo", "reset")


def _frozen(mapping: dict) -> MappingProxyType:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ChartPreferences:
    visible: MappingProxyType = field(
        default_factory=lambda: _frozen({m: True for m in CHART_METRICS}),
    )

    @classmethod
    def default(cls) -> "ChartPreferences":
        return cls()

    def is_visible(self, metric: str) -> bool:
        return self.visible.get(metric, False)

    @property
    def visible_metrics(self) -> list[str]:
        return [m for m in CHART_METRICS if self.visible.get(m)]

    def to_dict(self) -> dict:
        return dict(self.visible)


def _metric(action: dict) -> str:
    metric = action.get("metric")
    if metric not in CHART_METRICS:
        raise ValidationError(
            f"Unknown chart metric: {metric}",
            details={"metric": f"must be one of {', '.join(CHART_METRICS)}"},
        )
    return metric


def reduce_preferences(state: ChartPreferences, action: dict) -> ChartPreferences:
    """Return the preferences that result from applying *action* to *state*."""
    kind = (action or {}).get("type")
    if kind not in ACTION_TYPES:
        raise ValidationError(
            f"Unknown preference action: {kind}",
            details={"type": f"must be one of {', '.join(ACTION_TYPES)}"},
        )

    if kind == "reset":
        return ChartPreferences.default()

    metric = _metric(action)
    visible = dict(state.visible)
    if kind == "toggle":
        visible[metric] = not visible.get(metric, False)
    elif kind == "show":
        visible[metric] = True
    elif kind == "hide":
        visible[metric] = False
    elif kind == "solo":
        visible = {m: m == metric for m in CHART_METRICS}
    return ChartPreferences(visible=_frozen(visible))


def from_query(value: str | None) -> ChartPreferences:
    """Build preferences from a comma-separated list of visible metrics.

    An empty or missing value means "all visible".
    """
    if not value:
        return ChartPreferences.default()
    wanted = [part.strip() for part in value.split(",") if part.strip()]
    state = ChartPreferences(visible=_frozen({m: False for m in CHART_METRICS}))
    for metric in wanted:
        state = reduce_preferences(state, {"type": "show", "metric": metric})
    return state


def apply_to_series(series: list[dict], prefs: ChartPreferences) -> list[dict]:
    """Copy of *series* with hidden metric keys removed from every row."""
    hidden = {m for m in CHART_METRICS if not prefs.is_visible(m)}
    return [{k: v for k, v in row.items() if k not in hidden} for row in series]
