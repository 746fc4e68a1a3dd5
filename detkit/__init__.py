"""Pre- and post-processing for detection, pose, segmentation and matting models.

Detectors take the network as a callable; images are BGR uint8 NumPy arrays.
"""

__version__ = "0.1.0"