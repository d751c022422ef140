"""Input understanding components"""

from .intent_detector import IntentDetector, DetectedIntent, IntentPattern, intent_detector
from .entity_extractor import EntityExtractor, entity_extractor

__all__ = [
    'IntentDetector',
    'DetectedIntent',
    'IntentPattern',
    'intent_detector',
    'EntityExtractor',
    'entity_extractor',
]
