"""GUI adapter layer.

This package provides thin Qt-shaped adapters over the board engine.

Notes
-----
Adapters exist to:
- keep GUI code free of persistence details,
- deliver store notifications on the UI thread,
- drive periodic background sync.
"""
