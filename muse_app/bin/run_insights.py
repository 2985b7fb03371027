import argparse
import logging
import os

from muse_app.intelligence_engine.data_structures import ComparisonMode
from muse_app.intelligence_engine.primitives.records import latest_month
from muse_app.intelligence_engine.scorecard_service import ScorecardService
from muse_app.metric_catalog.catalog_parser import DEFAULT_CATALOG_PATH, load_metric_catalog
from muse_app.metric_catalog.catalog_service import CatalogService
from muse_app.query_manager.local_csv_query_manager import LocalCSVQueryManager
from muse_app.storytelling_engine.insight_generator import DEFAULT_MAX_RESULTS, InsightGenerator
from muse_app.storytelling_engine.insight_rules import build_default_rules
from muse_app.storytelling_engine.insight_service import InsightService


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Print the scorecard and key insights for a month.")
    parser.add_argument("csv_path", help="metric rows (Key, Market, Month, YTD, ...)")
    parser.add_argument("--catalog", default=DEFAULT_CATALOG_PATH, help="metric catalog TOML")
    parser.add_argument("--month", default=None, help="reporting month; defaults to the latest")
    parser.add_argument("--market", default=None, help="market for the scorecard; defaults to the aggregate")
    parser.add_argument(
        "--comparison",
        default=ComparisonMode.PRIOR_YEAR.value,
        choices=[m.value for m in ComparisonMode],
    )
    parser.add_argument("--max-results", type=int, default=DEFAULT_MAX_RESULTS)
    parser.add_argument("--log-level", default="WARNING")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # 1. Load and validate the catalog
    catalog_svc = CatalogService(load_metric_catalog(args.catalog))
    catalog_svc.validate_catalog()

    # 2. Load the dataset
    query_mgr = LocalCSVQueryManager(data_folder=os.getcwd())
    dataset = query_mgr.fetch_records(args.csv_path)
    month = args.month or latest_month(dataset)
    market = args.market or catalog_svc.aggregate_market

    # 3. Scorecard
    scorecard = ScorecardService(catalog_svc, args.comparison)
    print(f"=== {market} / {month} ===")
    for card in scorecard.hero_cards(dataset, month, market):
        if not card.has_data:
            print(f"{card.label}: No data")
            continue
        line = f"{card.label}: {card.value}  {card.change} {card.comparison_label}"
        if card.target:
            line += f"  (Target: {card.target})"
        print(line)

    print("")
    for row in scorecard.kpi_table(dataset, month, market):
        print(
            f"{row.name:<24} {row.value:>10} {row.target:>10} {row.vs_target:>10} "
            f"{row.prior_year:>10} {row.vs_prior_year:>10}"
        )

    # 4. Insights
    generator = InsightGenerator(build_default_rules(catalog_svc.aggregate_market), catalog_svc)
    panel = InsightService(generator).build_panel(dataset, month, args.max_results)
    print(f"\n{panel.title}")
    for line in panel.lines():
        print(line)


if __name__ == "__main__":
    main()
