# muse_app/storytelling_engine/insight_data_structures.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    POSITIVE = "positive"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort order used as the tie-break after priority (critical first)."""
        return SEVERITY_ORDER[self]

    @property
    def icon(self) -> str:
        return SEVERITY_ICONS[self]


SEVERITY_ORDER = {
    Severity.CRITICAL: 1,
    Severity.WARNING: 2,
    Severity.POSITIVE: 3,
    Severity.INFO: 4,
}

SEVERITY_ICONS = {
    Severity.CRITICAL: "🔴",
    Severity.WARNING: "🟡",
    Severity.POSITIVE: "🟢",
    Severity.INFO: "📊",
}

# conventional priority per severity; rules may override
DEFAULT_PRIORITY = {
    Severity.CRITICAL: 1,
    Severity.WARNING: 2,
    Severity.POSITIVE: 3,
    Severity.INFO: 4,
}


@dataclass(frozen=True)
class Insight:
    """
    A natural-language observation produced by one rule matching one record.
    `severity` doubles as the styling hook for the rendering layer.
    """
    id: str                  # the rule id
    severity: Severity
    priority: int            # 1 = most urgent
    icon: str
    message: str
    market: str
    metric_key: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "priority": self.priority,
            "icon": self.icon,
            "message": self.message,
            "market": self.market,
            "metric_key": self.metric_key,
        }


@dataclass(frozen=True)
class RuleDiagnostic:
    """
    Records a rule that raised while being evaluated against a record.
    The rule is skipped for that record; generation continues.
    """
    rule_id: str
    stage: str               # 'predicate' or 'render'
    metric_key: str
    market: str
    month: str
    error: str               # "ExceptionType: message"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "stage": self.stage,
            "metric_key": self.metric_key,
            "market": self.market,
            "month": self.month,
            "error": self.error,
        }


@dataclass
class InsightGenerationResult:
    month: str
    insights: List[Insight] = field(default_factory=list)
    diagnostics: List[RuleDiagnostic] = field(default_factory=list)
    # matches before truncation, after deduplication
    total_matches: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.insights

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "insights": [i.to_dict() for i in self.insights],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "total_matches": self.total_matches,
        }
