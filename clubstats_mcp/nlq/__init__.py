"""
Natural-language question pipeline for club statistics.
"""

from .parser import QuestionAnalysis, analyze_question
from .pipeline import QuestionProcessor

__all__ = ["QuestionAnalysis", "QuestionProcessor", "analyze_question"]
