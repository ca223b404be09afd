"""
Reliability map: geospatial ML prediction viewer.

Entry point: python -m relmap.gui_main

Provides:
- Prediction feed ingestion and validation (geo.feature_index, ingest)
- Variance / similarity reliability classification (geo.reliability)
- Marker rendering policy (geo.markers)
- Viewport fitting and selection state machine (gui.viewport, gui.selection)
- PyQt5 map and detail panel (gui.map_widget, gui.detail_panel)
"""

__version__ = "0.3.0"
