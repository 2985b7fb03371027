# muse_app/storytelling_engine/insight_generator.py

import logging
from typing import List, Optional, Sequence

from muse_app.core.exceptions import UnknownMetricKeyError
from muse_app.intelligence_engine.data_structures import MetricRecord
from muse_app.intelligence_engine.primitives.records import filter_records
from muse_app.metric_catalog.catalog_service import CatalogService
from .insight_data_structures import Insight, InsightGenerationResult, RuleDiagnostic
from .insight_rules import DEFAULT_RULES, InsightRule

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 5


class InsightGenerator:
    """
    Evaluates a rule set against every record of a month and produces a
    deduplicated, ranked and truncated list of Insight objects.

    Ordering: priority ascending, then severity (critical, warning, positive, info).
    Insights equal on both keep discovery order: records in dataset order,
    and for each record the rules in rule-set order.
    """

    def __init__(
        self,
        rules: Optional[Sequence[InsightRule]] = None,
        catalog_service: Optional[CatalogService] = None
    ):
        self.rules: List[InsightRule] = list(DEFAULT_RULES if rules is None else rules)
        if catalog_service is not None:
            self._check_rule_metrics(catalog_service)

    def _check_rule_metrics(self, catalog_service: CatalogService):
        for rule in self.rules:
            if rule.metric_key is not None and not catalog_service.has_metric(rule.metric_key):
                raise UnknownMetricKeyError(rule.metric_key, context=f"insight rule '{rule.id}'")

    def generate(
        self,
        dataset: Sequence[MetricRecord],
        month: str,
        max_results: int = DEFAULT_MAX_RESULTS
    ) -> List[Insight]:
        """
        Return at most `max_results` insights for `month`, most urgent first.
        An empty list is a valid result.
        """
        return self.generate_with_diagnostics(dataset, month, max_results).insights

    def generate_with_diagnostics(
        self,
        dataset: Sequence[MetricRecord],
        month: str,
        max_results: int = DEFAULT_MAX_RESULTS
    ) -> InsightGenerationResult:
        """
        Same as generate(), but also returns a RuleDiagnostic for every rule
        that raised while being evaluated or rendered.
        """
        if max_results < 0:
            raise ValueError(f"max_results must be >= 0, got {max_results}")

        # no market restriction: each rule decides its own market scope
        month_records = filter_records(dataset, month=month)

        insights: List[Insight] = []
        diagnostics: List[RuleDiagnostic] = []
        seen = set()

        for record in month_records:
            for rule in self.rules:
                insight = self._evaluate(rule, record, seen, diagnostics)
                if insight is not None:
                    seen.add((rule.id, record.market))
                    insights.append(insight)

        # sorted() is stable, which gives the discovery-order tie-break
        ranked = sorted(insights, key=lambda i: (i.priority, i.severity.rank))

        logger.debug(
            "Evaluated %d rules over %d records for %s: %d matches, %d diagnostics",
            len(self.rules), len(month_records), month, len(ranked), len(diagnostics)
        )

        return InsightGenerationResult(
            month=month,
            insights=ranked[:max_results],
            diagnostics=diagnostics,
            total_matches=len(ranked),
        )

    def _evaluate(
        self,
        rule: InsightRule,
        record: MetricRecord,
        seen: set,
        diagnostics: List[RuleDiagnostic]
    ) -> Optional[Insight]:
        """
        Run one rule against one record. Returns None when the rule does not
        match, the rule+market pair already produced an insight, or the rule raised.
        """
        try:
            matched = rule.matches(record)
        except Exception as e:
            self._record_failure(rule, record, "predicate", e, diagnostics)
            return None
        if not matched:
            return None

        # first qualifying record per rule+market wins
        if (rule.id, record.market) in seen:
            return None

        try:
            message = rule.message(record)
        except Exception as e:
            self._record_failure(rule, record, "render", e, diagnostics)
            return None

        return Insight(
            id=rule.id,
            severity=rule.severity,
            priority=rule.priority,
            icon=rule.marker,
            message=message,
            market=record.market,
            metric_key=record.metric_key,
        )

    def _record_failure(
        self,
        rule: InsightRule,
        record: MetricRecord,
        stage: str,
        error: Exception,
        diagnostics: List[RuleDiagnostic]
    ):
        logger.warning(
            "Insight rule %s failed during %s for %s/%s/%s: %s",
            rule.id, stage, record.metric_key, record.market, record.month, error
        )
        diagnostics.append(
            RuleDiagnostic(
                rule_id=rule.id,
                stage=stage,
                metric_key=record.metric_key,
                market=record.market,
                month=record.month,
                error=f"{type(error).__name__}: {error}",
            )
        )


def generate_insights(
    dataset: Sequence[MetricRecord],
    month: str,
    max_results: int = DEFAULT_MAX_RESULTS,
    rules: Optional[Sequence[InsightRule]] = None
) -> List[Insight]:
    """Convenience wrapper around InsightGenerator(rules).generate(...)."""
    return InsightGenerator(rules).generate(dataset, month, max_results)
