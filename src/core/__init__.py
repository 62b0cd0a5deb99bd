"""
Core components shared by the DFP adapter.

This module contains:
- Configuration management (config.py)
- Logging setup (logging_config.py)
"""
