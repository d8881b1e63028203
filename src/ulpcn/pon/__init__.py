"""
Panel of Normals (PON) module for ulpcn.

A panel holds the per-bin median corrected log-ratio of normal samples and
is subtracted from tumour log-ratios during normalization.
"""

from .model import PanelOfNormals

__all__ = ["PanelOfNormals"]
