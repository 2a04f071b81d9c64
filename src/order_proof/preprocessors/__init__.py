# ============================================================================
# src/order_proof/preprocessors/__init__.py
# ============================================================================
"""
Image preprocessing for text recognition.
"""

from .image_preprocessor import ImagePreprocessor, classify_layout, crops_for_layout

__all__ = ['ImagePreprocessor', 'classify_layout', 'crops_for_layout']
