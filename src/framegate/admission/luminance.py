"""
Luminance Helpers
=================

Perceptual brightness from RGBA pixel buffers.

All admission gates reason over luminance rather than colour:

    L = 0.299·R + 0.587·G + 0.114·B   (range 0-255)
"""

import numpy as np


LUMA_R = 0.299
LUMA_G = 0.587
LUMA_B = 0.114


def luminance(pixels: np.ndarray) -> np.ndarray:
    """
    Compute luminance for RGBA (or RGB) pixels.

    Args:
        pixels: Array whose last axis holds at least R, G, B

    Returns:
        float64 array with the last axis reduced, values in [0, 255]
    """
    rgb = pixels[..., :3].astype(np.float64)
    # Elementwise so equal pixels map to bit-identical luminance
    return LUMA_R * rgb[..., 0] + LUMA_G * rgb[..., 1] + LUMA_B * rgb[..., 2]


def sample_pixels(pixels: np.ndarray, stride: int) -> np.ndarray:
    """
    Take every `stride`-th pixel in row-major order.

    Args:
        pixels: RGBA array (H, W, 4)
        stride: Pixel step (1 = every pixel)

    Returns:
        Array (N, 4) of sampled pixels
    """
    if stride < 1:
        raise ValueError("stride must be >= 1")
    return pixels.reshape(-1, pixels.shape[-1])[::stride]
