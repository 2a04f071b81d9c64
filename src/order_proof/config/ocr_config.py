# ============================================================================
# src/order_proof/config/ocr_config.py
# ============================================================================
"""
Text Recognition Settings
- Worker pool size
- Per-pass timeout
- Tesseract language / page segmentation
- Pass parallelism
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class OCRSettings(BaseSettings):
    OCR_POOL_SIZE: int = Field(
        default=2,
        ge=1, le=16,
        description="Recognition engine instances kept warm in the worker pool"
    )
    OCR_TIMEOUT_SECONDS: float = Field(
        default=20.0,
        gt=0,
        description="Deadline for a single recognition pass over one image variant"
    )
    OCR_LANG: str = Field(
        default="eng",
        description="Tesseract language pack(s), e.g. 'eng' or 'eng+hin'"
    )
    OCR_PAGE_SEGMENTATION_MODE: int = Field(
        default=6,
        ge=0, le=13,
        description="Tesseract --psm value (6 = assume a single uniform block of text)"
    )
    OCR_PASS_PARALLELISM: int = Field(
        default=1,
        ge=1, le=8,
        description="Variants recognized concurrently. 1 = sequential with early exit"
    )
    OCR_EXECUTOR_WORKERS: int = Field(
        default=4,
        ge=1,
        description="Threads available to blocking recognition calls"
    )
