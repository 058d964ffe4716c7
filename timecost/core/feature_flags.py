import os


def _as_bool(val: str | None, default: bool = True) -> bool:
    if val is None:
        return default
    v = val.strip().lower()
    return v in {"1", "true", "yes", "on"}


class CostFeatures:
    live_cost: bool
    forecast: bool
    privileged_views: bool

    def __init__(self) -> None:
        self.live_cost = _as_bool(os.getenv("FEATURE_LIVE_COST"), True)
        self.forecast = _as_bool(os.getenv("FEATURE_FORECAST"), True)
        self.privileged_views = _as_bool(os.getenv("FEATURE_PRIVILEGED_VIEWS"), True)


features = CostFeatures()
