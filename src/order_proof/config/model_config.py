# ============================================================================
# src/order_proof/config/model_config.py
# ============================================================================
"""
Vision/Language Model Settings (Ollama)
- Host and credentials
- Ordered model version fallback list
- Per-call timeout
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class ModelSettings(BaseSettings):
    AI_ENABLED: bool = Field(
        default=True,
        description="Allow model refinement / direct extraction / model-first verification"
    )
    MODEL_HOST: str = Field(
        default="http://localhost:11434",
        description="Ollama server URL"
    )
    MODEL_API_KEY: Optional[str] = Field(
        default=None,
        description="Bearer token for a proxied Ollama endpoint"
    )
    MODEL_VERSIONS: List[str] = Field(
        default=["qwen2.5vl:7b", "llama3.2-vision:11b", "minicpm-v:8b", "llava:13b"],
        min_length=1, max_length=5,
        description="Model versions tried in priority order (JSON list in the environment)"
    )
    MODEL_TIMEOUT_SECONDS: float = Field(
        default=18.0,
        gt=0,
        description="Deadline for one model call before advancing to the next version"
    )
    MODEL_MAX_IMAGE_DIM: int = Field(
        default=1024,
        ge=256,
        description="Longest image side sent to the model"
    )
    MODEL_TEMPERATURE: float = Field(
        default=0.0,
        ge=0.0, le=1.0,
        description="Sampling temperature (0 = deterministic)"
    )
