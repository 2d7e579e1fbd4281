"""LLM services: providers, prompt construction and prediction generation."""

from matchcast.services.llm.prompt_builder import PredictionPromptBuilder
from matchcast.services.llm.service import LLMService
from matchcast.services.llm.validator import PredictionValidator, assess_data_quality

__all__ = [
    "LLMService",
    "PredictionPromptBuilder",
    "PredictionValidator",
    "assess_data_quality",
]
