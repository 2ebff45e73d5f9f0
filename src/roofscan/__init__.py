"""roofscan: rooftop raster analysis for solar site assessment."""

__version__ = "0.1.0"
