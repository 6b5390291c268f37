"""Repository scanning: framework detection and structural profiling."""

from .detector import Detection, detect_framework
from .profiler import Profiler, count_words

__all__ = ["Detection", "Profiler", "count_words", "detect_framework"]
