"""
Project cost forecasting and WBS engine.
"""

__version__ = '1.0.0'
