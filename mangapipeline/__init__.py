"""
mangapipeline - Convert folders of scanned pages to fixed-layout EPUB

A complete pipeline for:
1. Re-encoding page images and classifying singles vs two-page spreads
2. Choosing one page size for the whole volume
3. Splitting spreads into right/left pages at that size
4. Ordering pages right-to-left with cover and spread pairing rules
5. Packaging an EPUB3 fixed-layout book
"""

__version__ = "1.0.0"
__author__ = "mangapipeline"

from .pipeline import BatchPipeline, VolumePipeline
from .config import PipelineConfig, VolumeRequest

__all__ = ["BatchPipeline", "VolumePipeline", "PipelineConfig", "VolumeRequest"]
