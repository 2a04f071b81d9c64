# ============================================================================
# src/order_proof/preprocessors/image_preprocessor.py
# ============================================================================
"""
Screenshot Preprocessing for Text Recognition

Produces named variants of one screenshot:
- original (unmodified bytes)
- full-enhanced: grayscale + normalize + sharpen, upscaled to the working width
- high-contrast: aggressive linear contrast + strong unsharp mask (faded/dark captures)
- inverted: negate before grayscale (dark-mode UIs)
- 4-8 crops chosen by layout class; order metadata sits in different screen
  regions on phones, tablets and desktop browsers

Any fault or timeout while building variants falls back to the original
image alone.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

import numpy as np
from PIL import Image, ImageFilter, ImageOps

from ..core.types import CropRegion, EnhancementMode, ImageVariant, LayoutClass
from ..utils.image_utils import encode_jpeg, open_image

logger = logging.getLogger(__name__)

LANDSCAPE_MIN_RATIO = 1.0
TABLET_RATIO_RANGE = (0.65, 1.55)

HIGH_CONTRAST_GAIN = 1.6

# (label, left, top, width, height) as fractions of the image
PHONE_CROPS: Tuple[Tuple[str, float, float, float, float], ...] = (
    ("crop-top-35", 0.0, 0.0, 1.0, 0.35),
    ("crop-top-55", 0.0, 0.0, 1.0, 0.55),
    ("crop-middle-50", 0.0, 0.25, 1.0, 0.5),
    ("crop-upper-middle-40", 0.0, 0.15, 1.0, 0.4),
    ("crop-bottom-50", 0.0, 0.5, 1.0, 0.5),
)

TABLET_CROPS = (
    ("crop-wide-top-50", 0.05, 0.0, 0.9, 0.5),
    ("crop-wide-center-60", 0.05, 0.2, 0.9, 0.6),
    ("crop-center-top-40", 0.15, 0.1, 0.7, 0.4),
    ("crop-wide-bottom-50", 0.05, 0.5, 0.9, 0.5),
)

LANDSCAPE_CROPS = (
    ("crop-center-60", 0.2, 0.0, 0.6, 1.0),
    ("crop-right-50", 0.5, 0.0, 0.5, 1.0),
    ("crop-right-40-top", 0.6, 0.0, 0.4, 0.6),
    ("crop-center-top-50", 0.2, 0.0, 0.6, 0.5),
    ("crop-left-60", 0.0, 0.0, 0.6, 1.0),
)

# Wide landscape captures that still fall in the tablet ratio band get the
# two tablet bands most likely to hold the order summary.
LANDSCAPE_TABLET_EXTRA = ("crop-wide-center-60", "crop-wide-top-50")


def classify_layout(width: int, height: int) -> LayoutClass:
    """Classify a screenshot by aspect ratio (width / height)."""
    if width <= 0 or height <= 0:
        return LayoutClass.PHONE_PORTRAIT
    ratio = width / height
    low, high = TABLET_RATIO_RANGE
    tablet_like = low < ratio < high
    if ratio > LANDSCAPE_MIN_RATIO:
        return LayoutClass.LANDSCAPE_TABLET if tablet_like else LayoutClass.LANDSCAPE
    if tablet_like:
        return LayoutClass.TABLET
    return LayoutClass.PHONE_PORTRAIT


def crops_for_layout(layout: LayoutClass) -> List[Tuple[str, CropRegion]]:
    """Crop table for a layout class."""
    def regions(rows):
        return [(label, CropRegion(left, top, width, height)) for label, left, top, width, height in rows]

    if layout is LayoutClass.LANDSCAPE:
        return regions(LANDSCAPE_CROPS)
    if layout is LayoutClass.LANDSCAPE_TABLET:
        extra = [row for row in TABLET_CROPS if row[0] in LANDSCAPE_TABLET_EXTRA]
        return regions(LANDSCAPE_CROPS) + regions(extra)
    if layout is LayoutClass.TABLET:
        return regions(TABLET_CROPS)
    return regions(PHONE_CROPS)


class ImagePreprocessor:
    """
    Builds recognition variants for one screenshot.

    Variant builders are independent (each produces its own buffer) and fan
    out across the executor; the whole build is bounded by ``timeout``.
    """

    def __init__(
        self,
        working_width: int = 2200,
        timeout: float = 15.0,
        jpeg_quality: int = 90,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.working_width = working_width
        self.timeout = timeout
        self.jpeg_quality = jpeg_quality
        self._executor = executor

    async def variants(self, image_bytes: bytes) -> List[ImageVariant]:
        """All variants, or just the original on any fault or timeout."""
        original = ImageVariant(label="original", data=image_bytes)
        loop = asyncio.get_running_loop()

        async def build() -> List[ImageVariant]:
            base = await loop.run_in_executor(self._executor, self._load, image_bytes)
            layout = classify_layout(*base.size)
            builders = self._builders(base, layout)
            built = await asyncio.gather(
                *[loop.run_in_executor(self._executor, fn) for fn in builders]
            )
            logger.debug(
                f"Built {len(built) + 1} variants for {base.size[0]}x{base.size[1]} "
                f"({layout.value})"
            )
            return [original] + list(built)

        try:
            return await asyncio.wait_for(build(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Preprocessing exceeded {self.timeout:.1f}s; using original image only")
        except Exception as e:
            logger.warning(f"Preprocessing failed ({e}); using original image only")
        return [original]

    # ------------------------------------------------------------------

    @staticmethod
    def _load(image_bytes: bytes) -> Image.Image:
        return open_image(image_bytes).convert('RGB')

    def _builders(self, base: Image.Image, layout: LayoutClass) -> List[Callable[[], ImageVariant]]:
        builders = [
            lambda: self._variant("full-enhanced", self.enhance(base), EnhancementMode.ENHANCED),
            lambda: self._variant("high-contrast", self.high_contrast(base), EnhancementMode.HIGH_CONTRAST),
            lambda: self._variant("inverted", self.inverted(base), EnhancementMode.INVERTED),
        ]
        for label, region in crops_for_layout(layout):
            builders.append(
                lambda label=label, region=region: self._variant(
                    label,
                    self.enhance(base.crop(region.to_box(*base.size))),
                    EnhancementMode.ENHANCED,
                    region,
                )
            )
        return builders

    def _variant(
        self,
        label: str,
        image: Image.Image,
        mode: EnhancementMode,
        region: Optional[CropRegion] = None,
    ) -> ImageVariant:
        return ImageVariant(
            label=label,
            data=encode_jpeg(image, self.jpeg_quality),
            enhancement_mode=mode,
            crop_region=region,
        )

    def _upscale(self, image: Image.Image) -> Image.Image:
        """Resize to the working width; never shrink."""
        w, h = image.size
        if w >= self.working_width:
            return image
        scale = self.working_width / w
        return image.resize((self.working_width, max(1, int(round(h * scale)))), Image.LANCZOS)

    def enhance(self, image: Image.Image) -> Image.Image:
        """Grayscale + normalize + sharpen."""
        gray = ImageOps.autocontrast(ImageOps.grayscale(image), cutoff=1)
        return self._upscale(gray).filter(ImageFilter.SHARPEN)

    def high_contrast(self, image: Image.Image) -> Image.Image:
        """Linear contrast boost around mid-gray, then a strong unsharp mask."""
        arr = np.asarray(ImageOps.grayscale(image), dtype=np.float32)
        arr = np.clip(HIGH_CONTRAST_GAIN * (arr - 128.0) + 128.0, 0, 255)
        boosted = Image.fromarray(arr.astype(np.uint8))
        return self._upscale(boosted).filter(ImageFilter.UnsharpMask(radius=2, percent=200, threshold=2))

    def inverted(self, image: Image.Image) -> Image.Image:
        """Negate first so light-on-dark text becomes dark-on-light."""
        negated = ImageOps.invert(image.convert('RGB'))
        gray = ImageOps.autocontrast(ImageOps.grayscale(negated), cutoff=1)
        return self._upscale(gray).filter(ImageFilter.SHARPEN)
