"""DiffLoupe - intent and risk analysis for large diffs"""

__version__ = "1.0.0"
