"""Imaging package - mosaic assembly, cropping and encoding."""

from imaging.composer import (
    assemble_mosaic,
    crop_rect_for_bounds,
    crop_to_bounds,
    encode_png,
    new_canvas,
)

__all__ = [
    'assemble_mosaic',
    'crop_rect_for_bounds',
    'crop_to_bounds',
    'encode_png',
    'new_canvas',
]
