"""Image, 3D model, video and infographic generation clients."""

from productkit.generation.base import (
    ImageGenerator,
    InfographicGenerator,
    ModelGenerator,
    VideoGenerator,
)
from productkit.generation.fal import (
    DEFAULT_IMAGE_PROMPTS,
    FalImageGenerator,
    FalInfographicGenerator,
    FalModelGenerator,
    FalQueueClient,
    FalVideoGenerator,
)

__all__ = [
    "DEFAULT_IMAGE_PROMPTS",
    "FalImageGenerator",
    "FalInfographicGenerator",
    "FalModelGenerator",
    "FalQueueClient",
    "FalVideoGenerator",
    "ImageGenerator",
    "InfographicGenerator",
    "ModelGenerator",
    "VideoGenerator",
]
