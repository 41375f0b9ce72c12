"""Field-to-memory matching and fill orchestration."""
from .ai_matcher import AIMatcher, MatchOutcome
from .engine import AutofillEngine
from .fallback_matcher import FallbackMatcher
from .mapping_utils import create_empty_mapping, is_fillable, round_confidence, select_fillable
from .models import AutofillProgress, AutofillResult, FieldDescriptor, FieldMapping, ProgressState
from .session import AutofillSession

__all__ = [
    "AIMatcher",
    "MatchOutcome",
    "FallbackMatcher",
    "AutofillEngine",
    "AutofillSession",
    "AutofillProgress",
    "AutofillResult",
    "FieldDescriptor",
    "FieldMapping",
    "ProgressState",
    "create_empty_mapping",
    "is_fillable",
    "round_confidence",
    "select_fillable",
]
