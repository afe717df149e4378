"""
Image preparation for segmentation and region hashing.

Segmenters work on RGB images; region statistics are accumulated over
8-bit CIELAB samples, which the default bucket widths are calibrated for.
"""

import cv2
import numpy as np
import logging

logger = logging.getLogger(__name__)


def normalize_image(image_np: np.ndarray) -> np.ndarray:
    """
    Ensure image is 3-channel uint8 RGB.

    Float images in [0, 1] are scaled to [0, 255]; grayscale and RGBA
    inputs are converted to RGB.
    """
    image_np = np.asarray(image_np)
    if image_np.dtype != np.uint8:
        if image_np.size and image_np.max() <= 1.0:
            image_np = (image_np * 255).round()
        image_np = np.clip(image_np, 0, 255).astype(np.uint8)

    if image_np.ndim == 2:
        image_np = cv2.cvtColor(image_np, cv2.COLOR_GRAY2RGB)
    elif image_np.ndim == 3 and image_np.shape[2] == 4:
        image_np = cv2.cvtColor(image_np, cv2.COLOR_RGBA2RGB)
    elif image_np.ndim != 3 or image_np.shape[2] != 3:
        raise ValueError(f"Unsupported image shape {image_np.shape}")

    return image_np


def to_lab(image_np: np.ndarray) -> np.ndarray:
    """
    Convert an RGB image to 8-bit CIELAB.

    OpenCV scales L to [0, 255] and offsets a, b by 128, so every channel
    shares the [0, 256) range.

    Returns:
        uint8 array with the same rows and columns as the input.
    """
    image_np = normalize_image(image_np)
    return cv2.cvtColor(image_np, cv2.COLOR_RGB2LAB)
