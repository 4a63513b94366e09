#!/usr/bin/env python3
"""
Create a synthetic cork photograph for trying out the color profile analyzer.
"""

import numpy as np
import cv2


def create_cork_image(width=640, height=480, background=(40, 60, 150), cork=(120, 170, 205), seed=0):
    """
    Draw a cork-colored disc with speckle texture on a flat background.

    Colors are BGR. The disc is centered and large enough to cover the default crop.
    """
    rng = np.random.default_rng(seed)

    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:] = background

    radius = min(width, height) // 3
    cv2.circle(image, (width // 2, height // 2), radius, cork, cv2.FILLED)

    # Dark cork pores scattered over the disc
    for _ in range(300):
        angle = rng.uniform(0, 2 * np.pi)
        distance = radius * np.sqrt(rng.uniform(0, 1))
        x = int(width // 2 + distance * np.cos(angle))
        y = int(height // 2 + distance * np.sin(angle))
        pore = tuple(int(c * 0.55) for c in cork)
        cv2.circle(image, (x, y), int(rng.integers(1, 4)), pore, cv2.FILLED)

    return image


if __name__ == "__main__":
    cv2.imwrite('test_cork.jpg', create_cork_image())
    print("Test image 'test_cork.jpg' created successfully!")
