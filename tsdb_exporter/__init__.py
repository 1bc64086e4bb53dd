"""
OpenTSDB exporter for in-process metrics registries.
"""
__version__ = "1.0.0"
