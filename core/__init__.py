"""
Core functionality for the import pipeline.

This package contains:
- Configuration (config.py)
- Logging (logger.py)
"""
