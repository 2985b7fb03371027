import os
import toml
from typing import Any, Dict, List
from .catalog_models import MetricCatalog, MetricDefinition, MetricFormat, MarketDefinition
from muse_app.core.exceptions import ConfigurationError

DEFAULT_CATALOG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    "config",
    "metric_catalog.toml",
)


def parse_metric_catalog_toml(toml_str: str) -> MetricCatalog:
    data = toml.loads(toml_str)
    raw_metrics = data.get("metrics", [])

    metric_defs = []
    for raw_m in raw_metrics:
        metric_defs.append(_parse_single_metric(raw_m))

    subsets = data.get("subsets", {})
    all_keys = [m.key for m in metric_defs]

    return MetricCatalog(
        metrics=metric_defs,
        hero_keys=_parse_key_list(subsets, "hero", []),
        # an omitted scorecard subset means "every KPI, catalog order"
        scorecard_keys=_parse_key_list(subsets, "scorecard", all_keys),
        heatmap_keys=_parse_key_list(subsets, "heatmap", []),
        markets=_parse_markets(data.get("markets", {})),
    )


def load_metric_catalog(path: str = DEFAULT_CATALOG_PATH) -> MetricCatalog:
    with open(path, "r", encoding="utf-8") as f:
        toml_str = f.read()
    return parse_metric_catalog_toml(toml_str)


def load_default_catalog() -> MetricCatalog:
    """Load the catalog shipped with the package."""
    return load_metric_catalog(DEFAULT_CATALOG_PATH)


def _parse_single_metric(raw_m: Dict[str, Any]) -> MetricDefinition:
    if "key" not in raw_m:
        raise ConfigurationError(f"Metric entry without a 'key': {raw_m}")
    key = raw_m["key"]
    name = raw_m.get("name", key)
    category = raw_m.get("category", "")

    fmt = MetricFormat.from_code(raw_m.get("format"))
    if fmt is None:
        raise ConfigurationError(
            f"Metric '{key}' has unknown format '{raw_m.get('format')}'. "
            f"Expected one of {[f.value for f in MetricFormat]}."
        )

    return MetricDefinition(
        key=key,
        display_name=name,
        format=fmt,
        category=category,
    )


def _parse_key_list(subsets: Dict[str, Any], name: str, default: List[str]) -> List[str]:
    keys = subsets.get(name)
    if keys is None:
        return list(default)
    if not isinstance(keys, list):
        raise ConfigurationError(f"Subset '{name}' must be a list of metric keys.")
    return [str(k) for k in keys]


def _parse_markets(raw: Dict[str, Any]) -> MarketDefinition:
    aggregate = raw.get("aggregate", "All Markets")
    members = tuple(raw.get("members", []))
    return MarketDefinition(aggregate=aggregate, members=members)
