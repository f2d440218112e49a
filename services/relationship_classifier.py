# services/relationship_classifier.py
import asyncio
import logging
import re
from typing import Any, Dict, Optional

from services.errors import ClassificationError
from services.graph_normalizer import RELATIONSHIP_TYPES
from services.llm_service import LLMGenerationError, LLMJSONParseError, generate_json_response

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert academic researcher skilled in literature reviews and citation analysis. "
    "Your task is to analyze the relationship between two academic papers based on citation context. "
    "Provide clear, concise analysis in English with structured JSON output."
)

RELATIONSHIP_GUIDE = {
    "builds_on": "the citing paper directly builds upon the cited work",
    "extends": "the citing paper extends or improves the cited methods",
    "applies": "the citing paper applies the cited methods to a new domain",
    "compares": "the citing paper compares itself with the cited work",
    "critiques": "the citing paper points out limitations of the cited work",
    "references": "the citing paper simply references the cited work for background",
    "related": "the papers are related but none of the above fits",
}

_SENTENCE_END = re.compile(r"[.!?]$")


def build_prompt(citing_title: str, cited_title: str, citation_context: str) -> str:
    options = "\n".join(f"   - {name}: {desc}" for name, desc in RELATIONSHIP_GUIDE.items())
    return f"""Summarize the relationship between two research papers based on a specific citation context.

Citing paper: "{citing_title}"
Cited paper: "{cited_title}"

Citation context from the citing paper ({len(citation_context)} chars):
\"\"\"
{citation_context}
\"\"\"

Based ONLY on the citation context, provide:
1. relationship - exactly one of:
{options}
2. strength - 0.0 to 1.0, how strongly the citing paper relies on the cited paper
3. evidence - an exact, complete sentence quoted from the citation context
4. description - one concise sentence on why the citing paper cites the cited paper

Respond in JSON:
{{"relationship": "...", "strength": 0.8, "evidence": "...", "description": "..."}}"""


def complete_evidence(evidence: str, context: str) -> str:
    """
    Extend a quote that stops mid-sentence to the end of that sentence
    when the quote can be found in the context.
    """
    evidence = (evidence or "").strip()
    if not evidence or not context or _SENTENCE_END.search(evidence):
        return evidence

    idx = context.find(evidence)
    if idx == -1:
        return evidence

    tail = re.match(r"[^.!?]*[.!?]", context[idx + len(evidence):])
    if tail:
        return evidence + tail.group(0)
    return evidence


def parse_classification(raw: Dict[str, Any], context: str) -> Dict[str, Any]:
    """
    Validate an LLM reply. An unknown relationship label is a failure,
    never silently mapped to a default.
    """
    if not isinstance(raw, dict):
        raise ClassificationError("Classification reply is not an object")

    relationship = str(raw.get("relationship") or "").strip().lower()
    if relationship not in RELATIONSHIP_TYPES:
        raise ClassificationError(f"Unknown relationship '{relationship}'")

    try:
        strength = float(raw.get("strength"))
    except (TypeError, ValueError):
        raise ClassificationError(f"Invalid strength {raw.get('strength')!r}")

    return {
        "relationship": relationship,
        "strength": max(0.0, min(1.0, strength)),
        "evidence": complete_evidence(str(raw.get("evidence") or ""), context),
        "description": str(raw.get("description") or "").strip(),
    }


class RelationshipClassifier:
    """
    Classifies the relationship of a citing paper to a cited paper.
    Fails closed: any error yields None, so no edge is created.
    """

    def __init__(self, generate=generate_json_response):
        self._generate = generate

    def classify_sync(self, citing_title: str, cited_title: str, citation_context: str) -> Dict[str, Any]:
        prompt = build_prompt(citing_title, cited_title, citation_context)
        raw = self._generate(prompt, system_prompt=SYSTEM_PROMPT)
        return parse_classification(raw, citation_context)

    async def classify(self, citing_title: str, cited_title: str, citation_context: str) -> Optional[Dict[str, Any]]:
        try:
            result = await asyncio.to_thread(self.classify_sync, citing_title, cited_title, citation_context)
        except (ClassificationError, LLMGenerationError, LLMJSONParseError, ValueError) as e:
            logger.warning(f"❌ Classification failed for '{citing_title[:50]}' -> '{cited_title[:50]}': {e}")
            return None

        logger.info(
            f"✅ {citing_title[:40]}... {result['relationship']} ({result['strength']:.2f}) {cited_title[:40]}..."
        )
        return result


relationship_classifier = RelationshipClassifier()
