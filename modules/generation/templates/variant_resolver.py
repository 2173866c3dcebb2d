"""
Variant resolution by attribute matching.
"""

from typing import Dict, List, Optional
from dataclasses import dataclass, field

from modules.generation.core.exceptions import (
    VariantResolutionException,
    AmbiguousVariantException,
)
from modules.generation.templates.model import TemplateVariant
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

REQUIRED_MATCH_WEIGHT = 100
OPTIONAL_MATCH_WEIGHT = 10


@dataclass
class VariantSelectionCriteria:
    """
    Attributes used to pick a variant.

    Attributes:
        required: Attributes a variant must carry with exactly these values
        optional: Preferred attributes, used only for scoring
    """
    required: Dict[str, str] = field(default_factory=dict)
    optional: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Dict[str, str]]]) -> "VariantSelectionCriteria":
        data = data or {}
        return cls(
            required={str(k): str(v) for k, v in (data.get("required") or {}).items()},
            optional={str(k): str(v) for k, v in (data.get("optional") or {}).items()},
        )


class VariantResolver:
    """
    Picks the best matching variant of a template.

    1. Keep variants matching ALL required attributes.
    2. None left: fall back to the default variant, or fail.
    3. Score = 100 x required matches + 10 x optional matches.
    4. A tie for the top score is an error, never an arbitrary pick.
    """

    def resolve(
        self,
        variants: List[TemplateVariant],
        criteria: VariantSelectionCriteria,
        template_id: str = "",
    ) -> TemplateVariant:
        """
        Resolve a variant.

        Args:
            variants: All variants of the template
            criteria: Selection criteria
            template_id: Template ID, for error messages

        Returns:
            The selected variant

        Raises:
            VariantResolutionException: No match and no default variant
            AmbiguousVariantException: Several variants share the top score
        """
        candidates = [v for v in variants if self._matches_all(v, criteria.required)]

        if not candidates:
            default = next((v for v in variants if v.is_default), None)
            if default is None:
                raise VariantResolutionException(
                    f"No variant found for template '{template_id}' matching required attributes: {criteria.required}"
                )
            logger.debug(f"No variant matched {criteria.required} for template '{template_id}', using default '{default.id}'")
            return default

        scored = [(self._score(v, criteria), v) for v in candidates]
        top_score = max(score for score, _ in scored)
        top = [v for score, v in scored if score == top_score]

        if len(top) > 1:
            tied = sorted(v.id for v in top)
            raise AmbiguousVariantException(
                f"Ambiguous variant resolution for template '{template_id}': variants {', '.join(tied)} "
                f"all have score {top_score}. Add more attributes to disambiguate.",
                variant_ids=tied,
            )

        return top[0]

    @staticmethod
    def _matches_all(variant: TemplateVariant, required: Dict[str, str]) -> bool:
        return all(variant.attributes.get(k) == v for k, v in required.items())

    @staticmethod
    def _score(variant: TemplateVariant, criteria: VariantSelectionCriteria) -> int:
        required_matches = sum(1 for k, v in criteria.required.items() if variant.attributes.get(k) == v)
        optional_matches = sum(1 for k, v in criteria.optional.items() if variant.attributes.get(k) == v)
        return required_matches * REQUIRED_MATCH_WEIGHT + optional_matches * OPTIONAL_MATCH_WEIGHT
