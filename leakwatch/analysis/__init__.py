"""
Heap dump analysis: exclusion rules, results and the default analyzer.

The worker and result service modules are imported directly
(``leakwatch.analysis.service``, ``leakwatch.analysis.result_service``).
"""

from .excluded_refs import ExcludedRefs, ExcludedRefsBuilder, Exclusion
from .result import AnalysisResult, LeakTrace, LeakTraceElement
from .analyzer import HeapAnalyzer

__all__ = [
    'ExcludedRefs',
    'ExcludedRefsBuilder',
    'Exclusion',
    'AnalysisResult',
    'LeakTrace',
    'LeakTraceElement',
    'HeapAnalyzer',
]
