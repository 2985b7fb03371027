# muse_app/storytelling_engine/insight_service.py

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from muse_app.intelligence_engine.data_structures import MetricRecord
from muse_app.intelligence_engine.primitives.records import latest_month
from .insight_data_structures import Insight, RuleDiagnostic
from .insight_generator import DEFAULT_MAX_RESULTS, InsightGenerator

PANEL_TITLE = "KEY INSIGHTS"
EMPTY_STATE_MESSAGE = "No notable insights for this period."


@dataclass
class InsightPanel:
    """
    What the rendering layer shows for the insights panel.
    An empty panel must be displayed with EMPTY_STATE_MESSAGE, never as a blank list.
    """
    month: str
    insights: List[Insight] = field(default_factory=list)
    diagnostics: List[RuleDiagnostic] = field(default_factory=list)
    expanded: bool = True
    title: str = PANEL_TITLE

    @property
    def is_empty(self) -> bool:
        return not self.insights

    def lines(self) -> List[str]:
        if self.is_empty:
            return [EMPTY_STATE_MESSAGE]
        return [f"{i.icon} {i.message}" for i in self.insights]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "month": self.month,
            "expanded": self.expanded,
            "empty": self.is_empty,
            "empty_message": EMPTY_STATE_MESSAGE if self.is_empty else None,
            "insights": [i.to_dict() for i in self.insights],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


class InsightService:
    """
    A higher-level service that picks the reporting period, runs the
    generator and packages the result for display.
    """

    def __init__(self, generator: Optional[InsightGenerator] = None):
        self.generator = generator or InsightGenerator()

    def build_panel(
        self,
        dataset: Sequence[MetricRecord],
        month: Optional[str] = None,
        max_results: int = DEFAULT_MAX_RESULTS,
        expanded: bool = True
    ) -> InsightPanel:
        """
        Generate the panel for `month`, or for the latest month in the dataset
        when no month is given (EmptyDatasetError if the dataset is empty).
        """
        if month is None:
            month = latest_month(dataset)
        result = self.generator.generate_with_diagnostics(dataset, month, max_results)
        return InsightPanel(
            month=month,
            insights=result.insights,
            diagnostics=result.diagnostics,
            expanded=expanded,
        )
