import pytest
from muse_app.core.exceptions import UnknownMetricKeyError
from muse_app.intelligence_engine.data_structures import MetricRecord
from muse_app.metric_catalog.catalog_parser import load_default_catalog
from muse_app.metric_catalog.catalog_service import CatalogService
from muse_app.storytelling_engine.insight_data_structures import Severity
from muse_app.storytelling_engine.insight_generator import InsightGenerator, generate_insights
from muse_app.storytelling_engine.insight_rules import InsightRule

MONTH = "2024-06"


def _always(rule_id, priority, severity=Severity.INFO, metric_key=None):
    return InsightRule(
        id=rule_id,
        severity=severity,
        priority=priority,
        predicate=lambda r: True,
        render=lambda r: f"{rule_id} {r.market}",
        metric_key=metric_key,
    )


def _boom(record):
    raise ZeroDivisionError("bad rule")


def test_generate_end_to_end():
    dataset = [MetricRecord("SLS_TTL", "Kuwait", MONTH, variance_vs_target=-0.08)]
    insights = InsightGenerator().generate(dataset, MONTH)

    match = [i for i in insights if i.id == "sales_below_target_critical"]
    assert len(match) == 1
    insight = match[0]
    assert insight.severity is Severity.CRITICAL
    assert insight.priority == 1
    assert insight.icon == "🔴"
    assert insight.market == "Kuwait"
    assert insight.metric_key == "SLS_TTL"
    assert "Kuwait" in insight.message
    assert "8.0%" in insight.message
    assert insight.to_dict()["severity"] == "critical"


def test_only_requested_month_is_evaluated():
    dataset = [
        MetricRecord("SLS_TTL", "Kuwait", "2024-05", variance_vs_target=-0.08),
        MetricRecord("SLS_TTL", "Bahrain", MONTH, variance_vs_target=0.09),
    ]
    insights = generate_insights(dataset, MONTH)
    assert [(i.id, i.market) for i in insights] == [("sales_beating_target", "Bahrain")]


def test_aggregate_row_does_not_trigger_market_rules():
    dataset = [MetricRecord("SLS_TTL", "All Markets", MONTH, variance_vs_target=-0.08)]
    assert InsightGenerator().generate(dataset, MONTH) == []


def test_duplicate_rows_yield_one_insight_per_rule_and_market():
    dataset = [
        MetricRecord("SLS_TTL", "Kuwait", MONTH, variance_vs_target=-0.08),
        MetricRecord("SLS_TTL", "Kuwait", MONTH, variance_vs_target=-0.20),
        MetricRecord("SLS_TTL", "Bahrain", MONTH, variance_vs_target=-0.10),
    ]
    insights = InsightGenerator().generate(dataset, MONTH)
    critical = [i for i in insights if i.id == "sales_below_target_critical"]
    assert [i.market for i in critical] == ["Kuwait", "Bahrain"]
    # first qualifying record wins
    assert "8.0%" in critical[0].message


def test_truncation_keeps_most_urgent():
    rules = [_always(f"rule_p{p}", p) for p in range(8, 0, -1)]
    dataset = [MetricRecord("SLS_TTL", "Kuwait", MONTH)]
    gen = InsightGenerator(rules)

    result = gen.generate_with_diagnostics(dataset, MONTH, max_results=5)
    assert result.total_matches == 8
    assert [i.priority for i in result.insights] == [1, 2, 3, 4, 5]
    assert len(gen.generate(dataset, MONTH)) == 5
    assert len(gen.generate(dataset, MONTH, max_results=10)) == 8
    assert gen.generate(dataset, MONTH, max_results=0) == []


def test_severity_breaks_priority_ties():
    rules = [
        _always("info_p2", 2, Severity.INFO),
        _always("positive_p2", 2, Severity.POSITIVE),
        _always("critical_p2", 2, Severity.CRITICAL),
        _always("warning_p1", 1, Severity.WARNING),
    ]
    insights = InsightGenerator(rules).generate([MetricRecord("K", "Kuwait", MONTH)], MONTH)
    assert [i.id for i in insights] == ["warning_p1", "critical_p2", "positive_p2", "info_p2"]


def test_equal_rank_keeps_discovery_order():
    rules = [_always("first", 2, Severity.WARNING), _always("second", 2, Severity.WARNING)]
    dataset = [MetricRecord("K", "Kuwait", MONTH), MetricRecord("K", "Bahrain", MONTH)]
    insights = InsightGenerator(rules).generate(dataset, MONTH)
    assert [(i.id, i.market) for i in insights] == [
        ("first", "Kuwait"), ("second", "Kuwait"), ("first", "Bahrain"), ("second", "Bahrain")
    ]


def test_generation_is_deterministic():
    dataset = [
        MetricRecord("SLS_TTL", "Kuwait", MONTH, variance_vs_target=-0.08, variance_vs_prior_year=0.2),
        MetricRecord("MBR_TTL", "Bahrain", MONTH, variance_vs_prior_year=-0.2),
        MetricRecord("PCT_RDM", "Kuwait", MONTH, variance_vs_prior_year=-0.03),
        MetricRecord("PCT_XBP", "All Markets", MONTH, current_period_value=0.3, variance_vs_prior_year=0.001),
    ]
    gen = InsightGenerator()
    assert gen.generate(dataset, MONTH) == gen.generate(dataset, MONTH)


def test_throwing_predicate_is_isolated(caplog):
    bad = InsightRule(id="broken", severity=Severity.CRITICAL, priority=1,
                      predicate=_boom, render=lambda r: "never")
    good = _always("good", 3, Severity.POSITIVE)
    dataset = [MetricRecord("K", "Kuwait", MONTH), MetricRecord("K", "Bahrain", MONTH)]

    result = InsightGenerator([bad, good]).generate_with_diagnostics(dataset, MONTH)
    assert [i.id for i in result.insights] == ["good", "good"]
    assert len(result.diagnostics) == 2
    diag = result.diagnostics[0]
    assert diag.rule_id == "broken"
    assert diag.stage == "predicate"
    assert diag.market == "Kuwait"
    assert diag.error == "ZeroDivisionError: bad rule"
    assert "Insight rule broken failed" in caplog.text


def test_throwing_renderer_is_isolated():
    bad = InsightRule(id="bad_render", severity=Severity.WARNING, priority=2,
                      predicate=lambda r: True, render=_boom)
    result = InsightGenerator([bad, _always("good", 4)]).generate_with_diagnostics(
        [MetricRecord("K", "Kuwait", MONTH)], MONTH
    )
    assert [i.id for i in result.insights] == ["good"]
    assert result.diagnostics[0].stage == "render"


def test_failed_render_does_not_consume_dedup_slot():
    def render(record):
        if record.current_period_value is None:
            raise ValueError("no value")
        return "ok"

    rule = InsightRule(id="r", severity=Severity.INFO, priority=4,
                       predicate=lambda r: True, render=render)
    dataset = [MetricRecord("K", "Kuwait", MONTH), MetricRecord("K", "Kuwait", MONTH, current_period_value=1)]
    insights = InsightGenerator([rule]).generate(dataset, MONTH)
    assert [i.message for i in insights] == ["ok"]


def test_empty_month_yields_no_insights():
    dataset = [MetricRecord("SLS_TTL", "Kuwait", "2024-05", variance_vs_target=-0.08)]
    result = InsightGenerator().generate_with_diagnostics(dataset, MONTH)
    assert result.insights == []
    assert result.is_empty
    assert InsightGenerator().generate([], MONTH) == []


def test_negative_max_results_rejected():
    with pytest.raises(ValueError):
        InsightGenerator().generate([], MONTH, max_results=-1)


def test_rules_are_checked_against_catalog():
    catalog_service = CatalogService(load_default_catalog())
    InsightGenerator(catalog_service=catalog_service)
    with pytest.raises(UnknownMetricKeyError):
        InsightGenerator([_always("x", 1, metric_key="NOT_A_KPI")], catalog_service)
