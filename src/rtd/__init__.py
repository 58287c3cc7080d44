"""Real-time object detection over a bounded frame pipeline."""

__version__ = "0.1.0"
