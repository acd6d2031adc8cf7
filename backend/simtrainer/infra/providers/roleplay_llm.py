"""
Roleplay LLM calls — prompts and response handling for the simulation.

Five public functions, all going through the FallbackGateway:

  - analyze_message_llm:           sentiment / intent / hints for a trainee message
  - formulate_objection_llm:       the client voices an objection in character
  - generate_client_response_llm:  the client's next reply
  - evaluate_objection_handling:   rubric verdict on a trainee's objection handling
  - evaluate_conversation:         end-of-session multi-skill assessment

The first three raise on any failure; callers MUST catch and fall back to
rule-based analysis / templates.  The two evaluators never raise: a gateway
failure or unparseable output becomes a ParseFailure and takes the
deterministic branch.
"""

from __future__ import annotations

from simtrainer.core.errors import LLMGatewayError
from simtrainer.core.logging import logger
from simtrainer.domain.assessment import EvaluationResult, build_evaluation_result
from simtrainer.domain.handling import build_evaluation
from simtrainer.domain.payload import (
    ParseFailure,
    ParseResult,
    parse_json_object,
    safe_str_list,
)
from simtrainer.domain.state import (
    ClientPersona,
    ClientReaction,
    ConversationAnalysis,
    ConversationState,
    ConversationTurn,
    Difficulty,
    GeneratedObjection,
    ObjectionHandlingEvaluation,
    Personality,
    ScenarioType,
    Sentiment,
)
from simtrainer.infra.providers.gateway import FallbackGateway


def _format_history(turns: list[ConversationTurn], limit: int) -> str:
    recent = turns[-limit:] if limit else turns
    return "\n".join(f"{t.speaker.value}: {t.message}" for t in recent)


async def _request_json(
    gateway: FallbackGateway,
    prompt: str,
    system_prompt: str | None,
    max_tokens: int,
    temperature: float,
    purpose: str,
) -> ParseResult:
    try:
        raw = await gateway.complete(
            prompt,
            system_prompt=system_prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            response_format="json",
        )
    except LLMGatewayError as e:
        logger.warning("%s: %s", purpose, e)
        return ParseFailure(str(e))

    logger.debug("%s raw response: %s", purpose, raw)
    result = parse_json_object(raw)
    if isinstance(result, ParseFailure):
        logger.warning("%s: unparseable response (%s)", purpose, result.reason)
    return result


def _clean_utterance(text: str) -> str:
    return text.strip().strip("\"'").strip()


_PERSONALITY_GUIDES: dict[Personality, str] = {
    Personality.FRIENDLY: "Be warm and enthusiastic. Respond positively to good offers and make things easy for the agent.",
    Personality.SKEPTICAL: "Question claims. Ask for proof. Say things like \"Are you sure?\" and \"How do I know?\". Don't believe easily.",
    Personality.DEMANDING: "Be hard to please. Express dissatisfaction. Always ask for better. Say \"That's not enough\".",
    Personality.INDECISIVE: "Hesitate a lot. Say \"I don't know\" and \"Let me think\". Ask about other options. Make the decision hard.",
    Personality.ANALYTICAL: "Ask for numbers and data. Say \"How much exactly?\". Compare with the market. Ask about precise details.",
}

_PHASE_GUIDANCE: dict[ConversationState, str] = {
    ConversationState.OPENING: "Ask general questions about the property and area; introduce yourself and your needs.",
    ConversationState.DISCOVERY: "Ask about specifics: size, number of rooms, facilities, neighbours.",
    ConversationState.PRESENTING: "Discuss the available options, compare properties, give your opinion.",
    ConversationState.NEGOTIATING: "Negotiate price, ask for a discount or extras, discuss payment terms.",
    ConversationState.CLOSING: "Decide whether to go ahead; ask for time to think or make a decision.",
    ConversationState.ENDED: "Say goodbye to the agent.",
}


def persona_system_prompt(persona: ClientPersona) -> str:
    return (
        f"You are playing the role of {persona.name}, a {persona.personality.value} "
        f"real estate client.\n"
        f"{_PERSONALITY_GUIDES[persona.personality]}\n"
        f"Background: {persona.background}\n"
        f"Budget: {persona.budget}\n"
        f"Your motivations: {', '.join(persona.motivations)}\n"
        f"Your hidden concerns: {', '.join(persona.hidden_concerns)}\n\n"
        "Stay in character and respond naturally as this client would."
    )


# ---------------------------------------------------------------------------
# Message analysis
# ---------------------------------------------------------------------------

_ANALYSIS_SYSTEM = """\
You analyse messages from a real estate sales trainee in a roleplay. Output only valid json.

{"sentiment":"positive|neutral|negative","intent":"short_snake_case_label or null",\
"hints":["up to three short coaching hints"]}

- sentiment: how the message is likely to land with the client
- intent: e.g. greeting, discovery, presenting, price_discussion, objection_handling, closing
- hints: concrete, actionable, at most 3; empty list if the message is strong"""


async def analyze_message_llm(
    gateway: FallbackGateway,
    message: str,
    phase: ConversationState,
    history: list[ConversationTurn],
) -> ConversationAnalysis:
    """Raises on any failure; caller must fall back to rule-based analysis."""
    prompt = (
        f"Conversation phase: {phase.value}\n"
        f"Recent conversation:\n{_format_history(history, 4)}\n\n"
        f"Trainee message: \"{message}\""
    )
    raw = await gateway.complete(
        prompt,
        system_prompt=_ANALYSIS_SYSTEM,
        max_tokens=200,
        temperature=0.2,
        response_format="json",
    )
    result = parse_json_object(raw)
    if isinstance(result, ParseFailure):
        raise ValueError(f"analysis response unparseable: {result.reason}")

    data = result.data
    try:
        sentiment = Sentiment(str(data.get("sentiment", "neutral")).lower())
    except ValueError:
        sentiment = Sentiment.NEUTRAL
    intent = data.get("intent")
    return ConversationAnalysis(
        sentiment=sentiment,
        detected_intent=intent if isinstance(intent, str) and intent else None,
        hints=tuple(safe_str_list(data.get("hints"))[:3]),
        source="llm",
    )


# ---------------------------------------------------------------------------
# Objection formulation
# ---------------------------------------------------------------------------

async def formulate_objection_llm(
    gateway: FallbackGateway,
    objection: GeneratedObjection,
    persona: ClientPersona,
    history: list[ConversationTurn],
) -> str:
    """Raises on any failure; caller falls back to a catalog variation."""
    prompt = (
        f"You are {persona.name}, a {persona.personality.value} client with the "
        f"following background:\n{persona.background}\n\n"
        f"Your concerns: {', '.join(persona.objections)}\n\n"
        f"Based on the conversation so far:\n{_format_history(history, 4)}\n\n"
        f"Express the following objection in your voice "
        f"({persona.personality.value} personality):\n"
        f"Core concern: {objection.core_content}\n"
        f"Category: {objection.category.value}\n"
        f"Severity: {objection.severity.value}\n\n"
        "Guidelines:\n"
        "- Sound natural and conversational\n"
        f"- Match the {objection.severity.value} severity level\n"
        "- Reference specific things mentioned in the conversation if relevant\n"
        "- Keep response under 50 words\n\n"
        "Your objection:"
    )
    text = await gateway.complete(
        prompt,
        system_prompt=persona_system_prompt(persona),
        max_tokens=200,
        temperature=0.7,
    )
    text = _clean_utterance(text)
    if not text:
        raise RuntimeError("LLM returned empty objection")
    return text


# ---------------------------------------------------------------------------
# Client reply
# ---------------------------------------------------------------------------

async def generate_client_response_llm(
    gateway: FallbackGateway,
    persona: ClientPersona,
    scenario_type: ScenarioType,
    phase: ConversationState,
    history: list[ConversationTurn],
    trainee_message: str,
    objection_text: str | None = None,
    reaction: ClientReaction | None = None,
) -> str:
    """Raises on any failure; caller falls back to template text."""
    parts = [
        f"Scenario: {scenario_type.value.replace('_', ' ')}",
        f"Conversation state: {phase.value}",
        f"Guidance for this stage: {_PHASE_GUIDANCE[phase]}",
        f"Turn: {len(history)}",
        f"Recent conversation:\n{_format_history(history, 6)}",
        f"The agent just said: \"{trainee_message}\"",
    ]
    if reaction is not None:
        parts.append(f"How you feel about their last answer: {reaction.response_guidance}")
    if objection_text:
        parts.append(
            "In this reply you must express this concern in your own words: "
            f"\"{objection_text}\""
        )
    parts.append("Reply in 1-3 sentences as the client. No stage directions, no quotes.")

    text = await gateway.complete(
        "\n\n".join(parts),
        system_prompt=persona_system_prompt(persona),
        max_tokens=200,
        temperature=0.8,
    )
    text = _clean_utterance(text)
    if not text:
        raise RuntimeError("LLM returned empty client reply")
    return text


# ---------------------------------------------------------------------------
# Objection-handling evaluation
# ---------------------------------------------------------------------------

def _objection_review_prompt(
    objection: GeneratedObjection,
    trainee_response: str,
    history: list[ConversationTurn],
) -> str:
    return (
        "Evaluate how well this real estate sales trainee handled a client objection.\n\n"
        "OBJECTION RAISED:\n"
        f"Category: {objection.category.value}\n"
        f"Core Concern: {objection.core_content}\n\n"
        f"TRAINEE'S RESPONSE:\n\"{trainee_response}\"\n\n"
        f"CONVERSATION CONTEXT:\n{_format_history(history, 3)}\n\n"
        f"IDEAL RESPONSE ELEMENTS:\n" + "\n".join(objection.ideal_responses) + "\n\n"
        f"COMMON MISTAKES TO AVOID:\n" + "\n".join(objection.common_mistakes) + "\n\n"
        "Analyze the response and return JSON:\n"
        '{"acknowledged": boolean, "empathyShown": boolean, "addressedDirectly": boolean, '
        '"providedValue": boolean, "askedFollowUp": boolean, "dismissive": boolean, '
        '"argumentative": boolean, "ignoredConcern": boolean, "techniquesUsed": string[], '
        '"strengths": string[], "improvements": string[]}'
    )


async def evaluate_objection_handling(
    gateway: FallbackGateway,
    objection: GeneratedObjection,
    trainee_response: str,
    history: list[ConversationTurn],
) -> ObjectionHandlingEvaluation:
    result = await _request_json(
        gateway,
        _objection_review_prompt(objection, trainee_response, history),
        system_prompt=None,
        max_tokens=500,
        temperature=0.3,
        purpose="Objection evaluation",
    )
    return build_evaluation(result, objection, trainee_response)


# ---------------------------------------------------------------------------
# End-of-session assessment
# ---------------------------------------------------------------------------

_ASSESSMENT_SYSTEM_TEMPLATE = """\
You are an expert real estate sales trainer evaluating a trainee's performance in a simulated client interaction.

SCENARIO: {scenario}
DIFFICULTY: {difficulty}
CLIENT PERSONALITY: {personality}

Evaluate the trainee's performance based on this conversation transcript. Be fair but rigorous.

Respond with ONLY a valid JSON object (no markdown, no explanation) with this structure:
{{
  "overallScore": <number 0-100>,
  "summary": "<2-3 sentence performance summary>",
  "skillScores": {{
    "<skill>": {{"score": <number 0-100>, "reasoning": "<why>", "evidence": ["<quote>"], "tips": ["<tip>"]}}
  }},
  "highlights": ["<what the trainee did well>"],
  "improvementAreas": ["<what needs work>"],
  "recommendations": [
    {{"priority": "high|medium|low", "category": "technique|knowledge|mindset", "title": "<title>",
      "description": "<what to improve>", "actionableSteps": ["<step>"]}}
  ]
}}

Skills to score: communication, negotiation, objectionHandling, relationshipBuilding, productKnowledge, closingTechnique.

SCORING GUIDELINES:
- 90-100: Exceptional, trainee demonstrated mastery
- 80-89: Strong, minor areas for improvement
- 70-79: Competent, solid but needs refinement
- 60-69: Developing, significant gaps but shows potential
- Below 60: Needs work, fundamental skills need development

Be specific with evidence from the actual transcript. Do not give high scores without justification."""


async def evaluate_conversation(
    gateway: FallbackGateway,
    turns: list[ConversationTurn],
    scenario_type: ScenarioType,
    difficulty: Difficulty,
    persona: ClientPersona | None,
) -> EvaluationResult:
    transcript = "\n\n".join(f"{t.speaker.value.upper()}: {t.message}" for t in turns)
    system_prompt = _ASSESSMENT_SYSTEM_TEMPLATE.format(
        scenario=scenario_type.value.replace("_", " "),
        difficulty=difficulty.value,
        personality=persona.personality.value if persona else "neutral",
    )
    prompt = (
        f"CONVERSATION TRANSCRIPT:\n\n{transcript}\n\n---\n\n"
        f"Based on this {len(turns)}-turn conversation, provide your evaluation as JSON:"
    )
    result = await _request_json(
        gateway,
        prompt,
        system_prompt=system_prompt,
        max_tokens=1500,
        temperature=0.3,
        purpose="Conversation assessment",
    )
    evaluation = build_evaluation_result(result, turns)
    if evaluation.source == "fallback":
        logger.warning("Conversation assessment: using metric-based fallback scoring")
    return evaluation
