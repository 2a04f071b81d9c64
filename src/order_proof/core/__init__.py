# ============================================================================
# src/order_proof/core/__init__.py
# ============================================================================
"""
Core data model, outcomes and deadlines.

The orchestrator, result cache and service live in their own modules and
are imported from there to keep this package import-light.
"""

from .types import (
    clamp_confidence,
    CropRegion,
    EnhancementMode,
    ExtractionResult,
    ExtractionStage,
    FieldCandidate,
    FieldSource,
    ImageVariant,
    LayoutClass,
    ProofVerificationResult,
    RatingVerificationResult,
    RecognitionPassResult,
    ReturnWindowVerificationResult,
    VerificationMethod,
)
from .outcome import Attempt, ErrorKind, Outcome
from .deadline import Deadline
