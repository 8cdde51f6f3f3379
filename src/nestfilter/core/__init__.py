"""Core domain logic package.

This package contains the filter tree, its mutations, the layout pass, the
animation reconciler and the drag state machine.
Modules here must not import GUI frameworks (PySide6, Qt, etc.).
"""
