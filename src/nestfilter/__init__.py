"""
nestfilter - A nested AND/OR filter expression builder.

This package provides the filter tree model, its layout and animation
engine, and a desktop editor for building filters over tabular columns.
"""

__version__ = "0.1.0"
