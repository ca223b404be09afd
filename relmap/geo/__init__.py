"""Prediction points, reliability classification and marker policy."""
