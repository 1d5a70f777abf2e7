"""Services module - provides external service integrations."""

from .transcription import TranscriptionService
from .inference import CommandClassifier, NutritionAnalyzer, strip_data_url

__all__ = ['TranscriptionService', 'CommandClassifier', 'NutritionAnalyzer', 'strip_data_url']
