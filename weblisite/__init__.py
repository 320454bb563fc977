"""Weblisite generation backend - streaming file generation, repair and persistence"""

__version__ = "1.0.0"
