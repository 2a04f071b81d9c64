# ============================================================================
# src/order_proof/vlm/prompts.py
# ============================================================================
"""
Model Prompt Templates

Provides:
- Refinement prompt (recognized text + deterministic values)
- Direct image extraction prompt
- Purchase, rating and return-window proof prompts
- Prompt formatting with required-field checks

Every prompt asks for values that are explicitly visible and for JSON only;
the response shape itself is enforced by the schema sent alongside.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..extractors.platform_patterns import PLATFORMS_BY_NAME, detect_dominant_platform

MAX_PROMPT_TEXT_CHARS = 6000


class PromptTask(Enum):
    """Model tasks"""
    REFINE = "refine"
    DIRECT_EXTRACTION = "direct_extraction"
    PURCHASE_PROOF = "purchase_proof"
    RATING_PROOF = "rating_proof"
    RETURN_WINDOW_PROOF = "return_window_proof"


@dataclass
class PromptTemplate:
    """Prompt template"""
    name: str
    task: PromptTask
    template: str
    description: str
    required_fields: List[str]
    optional_fields: List[str] = None

    def __post_init__(self):
        if self.optional_fields is None:
            self.optional_fields = []

    def format(self, **kwargs) -> str:
        """
        Format template with provided values.

        Optional fields missing from ``kwargs`` render as "not provided".
        """
        missing = [f for f in self.required_fields if f not in kwargs]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")

        values = {name: "not provided" for name in self.optional_fields}
        values.update({k: ("not provided" if v is None else v) for k, v in kwargs.items()})
        return self.template.format(**values)


class OrderProofPrompts:
    """
    Collection of model prompt templates.
    """

    REFINE_TEMPLATE = PromptTemplate(
        name="refine",
        task=PromptTask.REFINE,
        template="""You are verifying OCR text for an e-commerce order.
Only respond with values that are explicitly visible in the OCR text provided.
Do NOT guess or invent values.

OCR_TEXT:
{ocr_text}

DETERMINISTIC_ORDER_ID: {order_id}
DETERMINISTIC_AMOUNT: {amount}
{platform_hint}
If the OCR text contains a different Order ID or Amount, suggest the exact value.
If the OCR text does not clearly show a value, leave it null.
Set confidence_score (0-100) to how sure you are that the suggestions are correct.
Return JSON only.""",
        description="Confirm or correct deterministic values against recognized text",
        required_fields=["ocr_text"],
        optional_fields=["order_id", "amount", "platform_hint"],
    )

    DIRECT_EXTRACTION_TEMPLATE = PromptTemplate(
        name="direct_extraction",
        task=PromptTask.DIRECT_EXTRACTION,
        template="""You are reading a screenshot of an e-commerce order page.
Extract ONLY values that are clearly visible in the image:
- order_id: the marketplace order identifier (not a tracking, invoice, AWB, UTR or transaction number)
- amount: the final amount paid (grand total / amount paid / you pay), as a number without currency symbols
- order_date: the date the order was placed
- sold_by: the seller name
- product_name: the purchased product's title
- platform: the marketplace the screenshot is from
{platform_hint}
Leave any field null when it is not visible. Do NOT guess.
Set confidence_score (0-100) to how sure you are overall.
Return JSON only.""",
        description="Extract order facts straight from the image",
        required_fields=[],
        optional_fields=["platform_hint"],
    )

    PURCHASE_PROOF_TEMPLATE = PromptTemplate(
        name="purchase_proof",
        task=PromptTask.PURCHASE_PROOF,
        template="""Validate whether this receipt/screenshot shows Order ID: {expected_order_id} and Amount: ₹{expected_amount}.
Extract the visible order ID and the final amount paid, then compare them with the expected values.
Ignore tracking, invoice and payment reference numbers.
Set order_id_match / amount_match to true only when the visible value matches.
Put the values you actually read in detected_order_id / detected_amount and explain any mismatch in discrepancy_note.
Set confidence_score (0-100) to how sure you are.
Return JSON only.""",
        description="Compare a purchase screenshot with the expected order id and amount",
        required_fields=["expected_order_id", "expected_amount"],
    )

    RATING_PROOF_TEMPLATE = PromptTemplate(
        name="rating_proof",
        task=PromptTask.RATING_PROOF,
        template="""This screenshot should show a product rating or review posted on a marketplace.
Expected account/buyer name: {expected_buyer_name}
Expected product: {expected_product_name}
Expected reviewer name: {expected_reviewer_name}

Check whether the visible account or profile name matches the expected buyer name,
whether the reviewed product matches the expected product, and (when a reviewer name
is expected) whether the review is posted under that name.
Report the star rating you can see as detected_rating (1-5) and the product title as detected_product_name.
Explain any mismatch in discrepancy_note. Leave reviewer_name_match null when no reviewer name is expected.
Set confidence_score (0-100) to how sure you are.
Return JSON only.""",
        description="Compare a rating/review screenshot with the expected buyer and product",
        required_fields=["expected_buyer_name", "expected_product_name"],
        optional_fields=["expected_reviewer_name"],
    )

    RETURN_WINDOW_PROOF_TEMPLATE = PromptTemplate(
        name="return_window_proof",
        task=PromptTask.RETURN_WINDOW_PROOF,
        template="""This screenshot should show an order whose return window has closed.
Expected Order ID: {expected_order_id}
Expected product: {expected_product_name}
Expected amount: ₹{expected_amount}
Expected seller: {expected_sold_by}

Check each expected value against what is visible.
Set return_window_closed to true only when the page clearly states the return window is closed,
has expired, or that the item is no longer returnable.
Put the visible return window text (for example "Return window closed on 12 Mar") in detected_return_window.
Leave sold_by_match null when no seller is expected. Explain any mismatch in discrepancy_note.
Set confidence_score (0-100) to how sure you are.
Return JSON only.""",
        description="Check order details and a closed return window",
        required_fields=["expected_order_id", "expected_product_name", "expected_amount"],
        optional_fields=["expected_sold_by"],
    )

    @classmethod
    def get_template(cls, task: PromptTask) -> PromptTemplate:
        """
        Get template for task.

        Raises:
            ValueError: If no template exists for the task
        """
        templates = {
            PromptTask.REFINE: cls.REFINE_TEMPLATE,
            PromptTask.DIRECT_EXTRACTION: cls.DIRECT_EXTRACTION_TEMPLATE,
            PromptTask.PURCHASE_PROOF: cls.PURCHASE_PROOF_TEMPLATE,
            PromptTask.RATING_PROOF: cls.RATING_PROOF_TEMPLATE,
            PromptTask.RETURN_WINDOW_PROOF: cls.RETURN_WINDOW_PROOF_TEMPLATE,
        }
        if task not in templates:
            raise ValueError(f"No template for task: {task}")
        return templates[task]


def platform_hint_text(ocr_text: str) -> str:
    """One line naming the likely marketplace and its order id shape, or empty."""
    platform = detect_dominant_platform(ocr_text or '')
    if not platform:
        return ""
    row = PLATFORMS_BY_NAME[platform]
    if row.canonical_groups:
        shape = "-".join("N" * size for size in row.canonical_groups)
        return f"The screenshot looks like {platform}; its order ids look like {shape}.\n"
    return f"The screenshot looks like {platform}.\n"


def _clip(text: str, limit: int = MAX_PROMPT_TEXT_CHARS) -> str:
    text = (text or '').strip()
    return text if len(text) <= limit else text[:limit] + "\n[...truncated]"


def build_refine_prompt(
    ocr_text: str,
    order_id: Optional[str] = None,
    amount: Optional[float] = None,
) -> str:
    return OrderProofPrompts.REFINE_TEMPLATE.format(
        ocr_text=_clip(ocr_text),
        order_id=order_id,
        amount=amount,
        platform_hint=platform_hint_text(ocr_text),
    )


def build_direct_prompt(ocr_text: str = "") -> str:
    return OrderProofPrompts.DIRECT_EXTRACTION_TEMPLATE.format(
        platform_hint=platform_hint_text(ocr_text),
    )


def build_purchase_prompt(expected_order_id: str, expected_amount: float) -> str:
    return OrderProofPrompts.PURCHASE_PROOF_TEMPLATE.format(
        expected_order_id=expected_order_id,
        expected_amount=expected_amount,
    )


def build_rating_prompt(
    expected_buyer_name: str,
    expected_product_name: str,
    expected_reviewer_name: Optional[str] = None,
) -> str:
    return OrderProofPrompts.RATING_PROOF_TEMPLATE.format(
        expected_buyer_name=expected_buyer_name,
        expected_product_name=expected_product_name,
        expected_reviewer_name=expected_reviewer_name,
    )


def build_return_window_prompt(
    expected_order_id: str,
    expected_product_name: str,
    expected_amount: float,
    expected_sold_by: Optional[str] = None,
) -> str:
    return OrderProofPrompts.RETURN_WINDOW_PROOF_TEMPLATE.format(
        expected_order_id=expected_order_id,
        expected_product_name=expected_product_name,
        expected_amount=expected_amount,
        expected_sold_by=expected_sold_by,
    )
