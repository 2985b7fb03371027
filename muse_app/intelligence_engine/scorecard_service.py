# muse_app/intelligence_engine/scorecard_service.py

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Sequence

import pandas as pd

from muse_app.intelligence_engine.data_structures import ComparisonMode, MetricRecord
from muse_app.intelligence_engine.primitives.formatting import (
    PLACEHOLDER,
    format_change,
    format_pct,
    format_value,
)
from muse_app.intelligence_engine.primitives.performance_classes import (
    get_badge_class,
    get_heatmap_class,
    get_row_class,
    safe_div,
)
from muse_app.intelligence_engine.primitives.records import (
    get_comparison_label,
    get_variance,
    lookup,
)
from muse_app.metric_catalog.catalog_service import CatalogService


@dataclass(frozen=True)
class HeroCard:
    metric_key: str
    label: str
    has_data: bool
    value: str = PLACEHOLDER
    change: str = PLACEHOLDER
    comparison_label: str = ""
    badge_class: str = "neutral"
    target: str = ""              # empty when the record has no target
    target_attainment: str = ""   # current / target, e.g. "93.4%"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class KpiTableRow:
    metric_key: str
    name: str
    value: str
    target: str
    vs_target: str
    vs_target_class: str
    prior_year: str
    vs_prior_year: str
    vs_prior_year_class: str
    row_class: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HeatmapCell:
    market: str
    metric_key: str
    metric_name: str
    change: str
    css_class: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ScorecardService:
    """
    Builds comparison-aware, formatted scorecard values from a dataset.
    Formats come from the catalog; every variance read goes through get_variance.
    """

    def __init__(self, catalog_service: CatalogService, comparison_mode=ComparisonMode.PRIOR_YEAR):
        self.catalog_service = catalog_service
        self.comparison_mode = ComparisonMode.from_code(comparison_mode)

    def hero_cards(self, dataset: Sequence[MetricRecord], month: str, market: str) -> List[HeroCard]:
        cards = []
        for key in self.catalog_service.hero_keys():
            mdef = self.catalog_service.get(key)
            label = mdef.display_name.upper()
            record = lookup(dataset, key, market, month)
            if record is None:
                cards.append(HeroCard(metric_key=key, label=label, has_data=False))
                continue

            variance = get_variance(record, self.comparison_mode)
            # a zero target is treated like a missing one
            has_target = bool(record.target_value)
            attainment = None
            if record.current_period_value is not None:
                attainment = safe_div(record.current_period_value, record.target_value, None)
            cards.append(
                HeroCard(
                    metric_key=key,
                    label=label,
                    has_data=True,
                    value=format_value(record.current_period_value, mdef.format),
                    change=format_change(variance, mdef.format),
                    comparison_label=get_comparison_label(self.comparison_mode),
                    badge_class=get_badge_class(variance, mdef.format),
                    target=format_value(record.target_value, mdef.format) if has_target else "",
                    target_attainment=format_pct(attainment) if has_target and attainment is not None else "",
                )
            )
        return cards

    def kpi_table(self, dataset: Sequence[MetricRecord], month: str, market: str) -> List[KpiTableRow]:
        rows = []
        for key in self.catalog_service.scorecard_keys():
            record = lookup(dataset, key, market, month)
            if record is None:
                continue
            mdef = self.catalog_service.get(key)
            vs_target = get_variance(record, ComparisonMode.TARGET)
            vs_ly = get_variance(record, ComparisonMode.PRIOR_YEAR)
            rows.append(
                KpiTableRow(
                    metric_key=key,
                    name=mdef.display_name,
                    value=format_value(record.current_period_value, mdef.format),
                    target=format_value(record.target_value, mdef.format),
                    vs_target=format_change(vs_target, mdef.format),
                    vs_target_class=get_badge_class(vs_target, mdef.format),
                    prior_year=format_value(record.prior_year_value, mdef.format),
                    vs_prior_year=format_change(vs_ly, mdef.format),
                    vs_prior_year_class=get_badge_class(vs_ly, mdef.format),
                    row_class=get_row_class(vs_target),
                )
            )
        return rows

    def heatmap(self, dataset: Sequence[MetricRecord], month: str) -> List[HeatmapCell]:
        """One cell per (real market, heatmap KPI), coloured by variance vs target."""
        cells = []
        for market in self.catalog_service.real_markets():
            for key in self.catalog_service.heatmap_keys():
                mdef = self.catalog_service.get(key)
                vs_target = get_variance(lookup(dataset, key, market, month), ComparisonMode.TARGET)
                cells.append(
                    HeatmapCell(
                        market=market,
                        metric_key=key,
                        metric_name=mdef.display_name,
                        change=format_change(vs_target, mdef.format),
                        css_class=get_heatmap_class(vs_target),
                    )
                )
        return cells

    def heatmap_frame(self, dataset: Sequence[MetricRecord], month: str) -> pd.DataFrame:
        """
        The heatmap as a DataFrame: index = markets, columns = KPI names,
        values = formatted change strings. Market and KPI order follow the catalog.
        """
        cells = self.heatmap(dataset, month)
        columns = [self.catalog_service.get(k).display_name for k in self.catalog_service.heatmap_keys()]
        if not cells:
            return pd.DataFrame(columns=columns)
        df = pd.DataFrame([c.to_dict() for c in cells])
        pivot = df.pivot(index="market", columns="metric_name", values="change")
        return pivot.reindex(index=self.catalog_service.real_markets(), columns=columns)
