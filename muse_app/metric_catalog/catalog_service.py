from typing import Dict, List
from .catalog_models import MetricCatalog, MetricDefinition, MetricFormat
from muse_app.core.exceptions import (
    DuplicateMetricKeyError,
    InvalidMetricReference,
    UnknownMetricKeyError,
)


class CatalogService:
    def __init__(self, catalog: MetricCatalog = None):
        self._catalog: MetricCatalog = MetricCatalog()
        self._metrics_by_key: Dict[str, MetricDefinition] = {}
        if catalog is not None:
            self.load_catalog(catalog)

    def load_catalog(self, catalog: MetricCatalog):
        self._catalog = catalog
        self._metrics_by_key.clear()
        for m in catalog.metrics:
            self._metrics_by_key[m.key] = m

    def validate_catalog(self) -> bool:
        self._check_duplicate_keys()
        self._check_subsets_exist()
        self._check_markets()
        return True

    def _check_duplicate_keys(self):
        keys = [m.key for m in self._catalog.metrics]
        if len(keys) != len(set(keys)):
            dupes = sorted({k for k in keys if keys.count(k) > 1})
            raise DuplicateMetricKeyError(f"Duplicate metric keys found: {dupes}")

    def _check_subsets_exist(self):
        subsets = {
            "hero": self._catalog.hero_keys,
            "scorecard": self._catalog.scorecard_keys,
            "heatmap": self._catalog.heatmap_keys,
        }
        for name, keys in subsets.items():
            for key in keys:
                if key not in self._metrics_by_key:
                    raise InvalidMetricReference(
                        f"Subset '{name}' references metric '{key}' not in catalog."
                    )

    def _check_markets(self):
        markets = self._catalog.markets
        if not markets.aggregate:
            raise InvalidMetricReference("Market enumeration has no aggregate pseudo-market.")
        if len(set(markets.members)) != len(markets.members):
            raise InvalidMetricReference("Duplicate markets in market enumeration.")

    def get(self, metric_key: str) -> MetricDefinition:
        """
        Look up a metric definition. An unknown key is a configuration error.
        """
        try:
            return self._metrics_by_key[metric_key]
        except KeyError:
            raise UnknownMetricKeyError(metric_key) from None

    def has_metric(self, metric_key: str) -> bool:
        return metric_key in self._metrics_by_key

    def get_format(self, metric_key: str) -> MetricFormat:
        return self.get(metric_key).format

    def all_metrics(self) -> List[MetricDefinition]:
        return list(self._metrics_by_key.values())

    def get_catalog(self) -> MetricCatalog:
        return self._catalog

    # Ordered subsets used by presentation
    def hero_keys(self) -> List[str]:
        return list(self._catalog.hero_keys)

    def scorecard_keys(self) -> List[str]:
        return list(self._catalog.scorecard_keys)

    def heatmap_keys(self) -> List[str]:
        return list(self._catalog.heatmap_keys)

    @property
    def aggregate_market(self) -> str:
        return self._catalog.markets.aggregate

    def markets(self) -> List[str]:
        """All markets, aggregate first."""
        return self._catalog.markets.all_markets()

    def real_markets(self) -> List[str]:
        return [m for m in self.markets() if not self._catalog.markets.is_aggregate(m)]
