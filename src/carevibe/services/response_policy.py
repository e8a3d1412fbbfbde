"""Response style policy: how long, in what tone, with which formatting.

A message is first classified by its rhetorical type (simple factual
question, guidance request, data question, or general). The classification
picks a base policy which the user's verbosity preference then scales.
"""
import math
import re
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Pattern, Tuple

from pydantic import ValidationError

from carevibe.core.config import settings
from carevibe.core.logging import logger
from carevibe.models.schemas import ClassificationResponse
from carevibe.services.llm import LLMService, llm_service


SIMPLE_INFO = "simple_info"
GUIDANCE = "guidance"
DATA_QUESTION = "data_question"
GENERAL = "general"

SIMPLE_PATTERNS: List[Pattern] = [
    re.compile(r"^what (is|was|are)"),
    re.compile(r"^how (much|many)"),
    re.compile(r"^when (did|was|is)"),
    re.compile(r"^where"),
    re.compile(r"^who"),
    re.compile(r"\b(latest|current|today|yesterday)\b"),
    re.compile(r"^(bmi|weight|sleep|steps|heart rate|stress)"),
]
# A simple question mentioning numbers or periods is really about data
DATA_HINT = re.compile(r"\d{1,4}|ago|last|past|average|trend")

GUIDANCE_PATTERNS: List[Pattern] = [
    re.compile(r"how (can|do|should|to)"),
    re.compile(r"help me"),
    re.compile(r"improve|better|increase|decrease|reduce"),
    re.compile(r"advice|recommend|suggest"),
    re.compile(r"should i|can i"),
    re.compile(r"tips|ways|steps"),
]

DATA_PATTERNS: List[Pattern] = [
    re.compile(r"average|mean|median"),
    re.compile(r"trend|pattern|change"),
    re.compile(r"increasing|decreasing|rising|falling"),
    re.compile(r"compare|comparison"),
    re.compile(r"[1-9][0-9]{0,2}\s*(day|week|month|year)"),
    re.compile(r"last\s+[1-9][0-9]{0,2}"),
]

CLASSIFICATION_PROMPT = """You are a message classifier. Classify user health questions into one of these types:
- "simple_info": Short factual questions (What is X? When was Y?)
- "guidance": Advice/recommendation requests (How do I improve? Help me with...)
- "data_question": Metric/trend analysis requests (What's my average? Is X increasing?)
- "general": Conversational or unclear intent

Return JSON: {"type": "simple_info|guidance|data_question|general", "confidence": 0.0-1.0}"""

TONE_PHRASES = {
    "direct": "Be direct and factual",
    "supportive": "Be friendly and supportive",
    "coach": "Be encouraging and motivational",
    "analytical": "Be clear and analytical",
}

BRIEF_FACTOR = 0.7
DETAILED_FACTOR = 1.5


@dataclass(frozen=True)
class ResponsePolicy:
    classification: str = GENERAL
    tone: str = "supportive"
    max_chars: int = 450
    max_sentences: int = 6
    allow_bullets: bool = True
    include_key_takeaway: bool = True
    format_blocks: bool = True
    safety_level: str = "standard"


BASE_POLICIES = {
    SIMPLE_INFO: ResponsePolicy(
        classification=SIMPLE_INFO, tone="direct", max_chars=300, max_sentences=4,
        allow_bullets=False, include_key_takeaway=False,
    ),
    GUIDANCE: ResponsePolicy(
        classification=GUIDANCE, tone="coach", max_chars=600, max_sentences=8,
        allow_bullets=True, include_key_takeaway=True,
    ),
    DATA_QUESTION: ResponsePolicy(
        classification=DATA_QUESTION, tone="analytical", max_chars=400, max_sentences=5,
        allow_bullets=False, include_key_takeaway=True,
    ),
    GENERAL: ResponsePolicy(classification=GENERAL),
}


def _simple_info(lower: str) -> Optional[str]:
    if any(p.search(lower) for p in SIMPLE_PATTERNS):
        return DATA_QUESTION if DATA_HINT.search(lower) else SIMPLE_INFO
    return None


def _guidance(lower: str) -> Optional[str]:
    return GUIDANCE if any(p.search(lower) for p in GUIDANCE_PATTERNS) else None


def _data_question(lower: str) -> Optional[str]:
    return DATA_QUESTION if any(p.search(lower) for p in DATA_PATTERNS) else None


HEURISTIC_RULES: List[Tuple[str, Callable[[str], Optional[str]]]] = [
    ("simple_info", _simple_info),
    ("guidance", _guidance),
    ("data_question", _data_question),
]


def classify_with_heuristics(message: str) -> str:
    """First matching heuristic wins; `general` when none match."""
    if not message or not isinstance(message, str):
        return GENERAL
    lower = message.lower()
    for _, rule in HEURISTIC_RULES:
        result = rule(lower)
        if result:
            return result
    return GENERAL


def apply_verbosity(policy: ResponsePolicy, user_preference: Optional[str]) -> ResponsePolicy:
    """Scale a policy by the user's verbosity preference."""
    if user_preference == "brief":
        return replace(
            policy,
            max_chars=math.floor(policy.max_chars * BRIEF_FACTOR),
            max_sentences=math.floor(policy.max_sentences * BRIEF_FACTOR),
            include_key_takeaway=False,
        )
    if user_preference == "detailed":
        return replace(
            policy,
            max_chars=math.floor(policy.max_chars * DETAILED_FACTOR),
            max_sentences=math.floor(policy.max_sentences * DETAILED_FACTOR),
        )
    return policy


def policy_for(classification: str, has_resolved_data: bool = False,
               user_preference: Optional[str] = None) -> ResponsePolicy:
    policy = BASE_POLICIES.get(classification, BASE_POLICIES[GENERAL])
    if has_resolved_data:
        policy = replace(policy, safety_level="grounded")
    return apply_verbosity(policy, user_preference)


def format_prompt_instructions(policy: ResponsePolicy) -> str:
    """Render a policy as instructions for the system prompt."""
    instructions = [TONE_PHRASES.get(policy.tone, TONE_PHRASES["supportive"])]
    instructions.append(f"Keep your answer under {policy.max_sentences} sentences")

    if policy.format_blocks:
        instructions.append("Use short paragraphs (2-3 sentences max per block)")
        instructions.append("Add blank lines between sections")
    if policy.allow_bullets:
        instructions.append("Use bullet points (with - prefix) for lists")
    if policy.include_key_takeaway:
        instructions.append('End with one "Key takeaway:" line summarizing the main point')

    instructions.append('Never diagnose or say "you have X"')
    instructions.append('Use phrases like "your data suggests" or "looks like"')
    instructions.append("Recommend seeing a doctor if anything is concerning or unclear")
    if policy.safety_level == "grounded":
        instructions.append("Do not change any number or date from the verified data")

    return ". ".join(instructions) + "."


def enforce_constraints(response: str, policy: ResponsePolicy) -> str:
    """Trim a reply to the policy's character budget.

    Cuts after the last sentence-ending punctuation when that lies beyond 60%
    of the budget, otherwise hard-cuts and appends "...".
    """
    if not response or len(response) <= policy.max_chars:
        return response

    truncated = response[:policy.max_chars]
    cut_point = max(truncated.rfind("."), truncated.rfind("?"), truncated.rfind("!"))
    if cut_point > policy.max_chars * 0.6:
        return truncated[:cut_point + 1].strip()
    return truncated.strip() + "..."


class ResponsePolicyEngine:
    """Classifies messages and derives their response policy."""

    def __init__(self, llm: Optional[LLMService] = None, use_model: Optional[bool] = None):
        self.llm = llm or llm_service
        self.use_model = settings.chat.use_model_classification if use_model is None else use_model

    async def classify_with_model(self, message: str) -> str:
        """One temperature-0 classification request; `general` on any failure."""
        payload = await self.llm.complete_json(CLASSIFICATION_PROMPT, message, max_tokens=50)
        if payload is None:
            return GENERAL
        try:
            reply = ClassificationResponse.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"[ResponsePolicy] Malformed classification reply: {e.error_count()} errors")
            return GENERAL
        return reply.type or GENERAL

    async def classify(self, message: str, message_length: Optional[int] = None) -> str:
        classification = classify_with_heuristics(message)
        length = len(message or "") if message_length is None else message_length
        if classification == GENERAL and length > 5 and self.use_model:
            classification = await self.classify_with_model(message)
        logger.debug(f"[ResponsePolicy] Classification: {classification}")
        return classification

    async def derive_policy(
        self,
        message: str,
        message_length: Optional[int] = None,
        has_resolved_data: bool = False,
        user_preference: Optional[str] = None,
    ) -> ResponsePolicy:
        """
        Determine reply style and length for a message.

        Args:
            message: User message
            message_length: Length used for the model-fallback gate
            has_resolved_data: Whether a verified template backs the reply
            user_preference: "brief", "detailed" or None

        Returns:
            ResponsePolicy
        """
        classification = await self.classify(message, message_length)
        return policy_for(classification, has_resolved_data, user_preference)


response_policy_engine = ResponsePolicyEngine()
