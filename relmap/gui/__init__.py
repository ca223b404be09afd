"""PyQt5 map shell, viewport and selection controllers."""
