"""
Infrastructure layer package.

This package contains modules for interacting with the outside world:
- Filter state persistence
- Column catalog loading
- Logging configuration
- Path utilities

Modules here must not import GUI frameworks (PySide6, Qt, etc.).
"""
