# Ethan Doughty
# runtime/__init__.py
"""Server discovery and client error types."""
