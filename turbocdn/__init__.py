"""Adaptive download tuning: speed-based parameter adaptation, CDN quality scoring, download metrics and option presets."""

__version__ = "0.4.3"

__all__ = ["monitoring", "options", "quality", "speed"]