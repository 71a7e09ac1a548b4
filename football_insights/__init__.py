"""Football Insights: match data aggregation, phase-aware refreshes and AI automation."""

__version__ = "1.0.0"
