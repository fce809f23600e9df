"""Shared test fixtures for visual regression tests."""

import numpy as np
import cv2
import pytest


@pytest.fixture
def red_image():
    """Generate a 200x200 solid red image."""
    img = np.zeros((200, 200, 3), dtype=np.uint8)
    img[:, :] = [255, 0, 0]
    return img


@pytest.fixture
def blue_image():
    """Generate a 200x200 solid blue image."""
    img = np.zeros((200, 200, 3), dtype=np.uint8)
    img[:, :] = [0, 0, 255]
    return img


@pytest.fixture
def map_image():
    """Generate a 400x300 map-like image: background, a road and a lake."""
    img = np.ones((300, 400, 3), dtype=np.uint8) * 235
    cv2.line(img, (0, 150), (400, 120), (90, 90, 90), 6)
    cv2.circle(img, (280, 200), 50, (60, 120, 220), -1)
    cv2.rectangle(img, (40, 40), (140, 100), (120, 200, 120), -1)
    return img


@pytest.fixture
def gradient_image():
    """Generate a 400x400 horizontal gray gradient."""
    row = np.rint(np.arange(400) * 255.0 / 399).astype(np.uint8)
    gray = np.tile(row, (400, 1))
    return np.dstack([gray, gray, gray])


@pytest.fixture
def noise_image():
    """Generate a 200x200 random noise image."""
    rng = np.random.RandomState(42)
    return rng.randint(0, 255, (200, 200, 3), dtype=np.uint8)
