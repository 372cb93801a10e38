"""
Tashkeel Review Module v1.0.0
=============================
Suggestion, diff and review engine for tashkeel (Arabic diacritic)
corrections on page text.

Features:
- Tashkeel-aware character classification
- Per-character suggestion chains with approve/decline review
- Escalating sentence/word/character diff
- Line diff (positional or LCS-aligned) with tashkeel change counts
- Change requests at line or word granularity
"""

from .aggregator import ChangeRequestBuilder, build_change_request
from .chain import DocumentSession
from .classifier import Category, ChangeKind, classify, classify_change, is_tashkeel, strip_tashkeel
from .differ import TextDiffer, compute_diff
from .line_diff import LineDiffer, apply_line_changes, compute_line_diff
from .models import (
    ChangeRequest,
    ChangeSummary,
    CharacterUnit,
    DiffChange,
    DiffResult,
    LineChange,
    Suggestion,
    WordChange,
)
from .segmenter import segment
from .store import InMemorySubmissionSink, ReviewStore, Subject

__version__ = "1.0.0"
__all__ = [
    'ChangeRequestBuilder',
    'build_change_request',
    'DocumentSession',
    'Category',
    'ChangeKind',
    'classify',
    'classify_change',
    'is_tashkeel',
    'strip_tashkeel',
    'TextDiffer',
    'compute_diff',
    'LineDiffer',
    'apply_line_changes',
    'compute_line_diff',
    'ChangeRequest',
    'ChangeSummary',
    'CharacterUnit',
    'DiffChange',
    'DiffResult',
    'LineChange',
    'Suggestion',
    'WordChange',
    'segment',
    'InMemorySubmissionSink',
    'ReviewStore',
    'Subject',
]
