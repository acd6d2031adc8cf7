"""
Client persona generation.

Personas are assembled from templates so a session can start without a model
call.  Personality comes from difficulty (easy -> friendly, medium ->
analytical, hard -> demanding) unless the scenario overrides it.  Every random
pick (name, background, budget, greeting) goes through the caller's
``random.Random`` so a seeded session reproduces exactly.
"""

from __future__ import annotations

import random
from typing import Any

from simtrainer.domain.state import (
    ClientPersona,
    Difficulty,
    Personality,
    ScenarioType,
)


_DIFFICULTY_PERSONALITY: dict[Difficulty, Personality] = {
    Difficulty.EASY: Personality.FRIENDLY,
    Difficulty.MEDIUM: Personality.ANALYTICAL,
    Difficulty.HARD: Personality.DEMANDING,
}

# Legacy scenario names share content with their current equivalents
_SCENARIO_ALIASES: dict[ScenarioType, ScenarioType] = {
    ScenarioType.CLOSING: ScenarioType.CLOSING_DEAL,
    ScenarioType.COLD_CALL: ScenarioType.FIRST_CONTACT,
}

_DEFAULT_MOTIVATIONS = (
    "Find the right property",
    "Make a sound investment",
    "Live somewhere convenient",
)
_DEFAULT_OBJECTIONS = ("The price is a bit high", "I need time to think")
_DEFAULT_HIDDEN_CONCERNS = (
    "Worried about making the wrong decision",
    "Not sure the financing will come through",
)

# Scenario-specific persona fields; anything absent uses the defaults above
_SCENARIO_OVERRIDES: dict[ScenarioType, dict[str, Any]] = {
    ScenarioType.COLD_CALL: {
        "motivations": (
            "Find an agent I can trust",
            "Understand the property market",
            "Start looking for a home",
        ),
        "objections": ("I don't want to commit yet", "I want to compare agents first"),
    },
    ScenarioType.PRICE_NEGOTIATION: {
        "motivations": (
            "Get the best value",
            "Stay within my budget",
            "Make sure the deal is fair",
        ),
        "objections": (
            "The asking price is too high",
            "I've seen similar properties for less",
            "Worried about hidden costs",
        ),
    },
    ScenarioType.OBJECTION_HANDLING: {
        "personality": Personality.SKEPTICAL,
        "motivations": ("Not being taken advantage of", "Getting excellent service"),
        "objections": ("Bad past experiences", "Trust issues", "High expectations"),
    },
}


# ---------------------------------------------------------------------------
# Name / background / budget pools
# ---------------------------------------------------------------------------

_FIRST_NAMES = (
    "Michael", "David", "James", "Omar", "Daniel", "Robert", "Ahmed", "Thomas",
    "Sarah", "Emily", "Laura", "Fatima", "Rachel", "Nora", "Hannah", "Maya",
)
_FAMILY_NAMES = (
    "Carter", "Haddad", "Nguyen", "Patel", "Morgan", "Reyes", "Walsh",
    "Okafor", "Bennett", "Kowalski",
)

_BACKGROUNDS: dict[ScenarioType, tuple[str, ...]] = {
    ScenarioType.PROPERTY_SHOWING: (
        "First-time buyer looking for a family home close to good schools.",
        "Young professional who just relocated for work and needs a place quickly.",
        "Growing family that has outgrown their current apartment.",
        "Retiree looking for a quiet apartment in an upscale neighbourhood.",
    ),
    ScenarioType.PRICE_NEGOTIATION: (
        "Savvy buyer who has done a lot of market research.",
        "Investor looking for a solid rental yield.",
        "Family making the biggest purchase of their lives.",
        "Business owner hunting for an excellent deal.",
    ),
    ScenarioType.OBJECTION_HANDLING: (
        "Cautious buyer with many questions and concerns.",
        "Experienced property owner who knows exactly what they want.",
        "Couple with different priorities trying to agree.",
        "Someone who had a bad experience with an agent before.",
    ),
    ScenarioType.FIRST_CONTACT: (
        "Still exploring the idea of buying.",
        "A friend recommended this agency.",
        "Saw a listing online that caught their eye.",
        "Considering a first property investment.",
    ),
    ScenarioType.CLOSING_DEAL: (
        "Has seen many properties and found the one.",
        "Ready to make an offer but wants the best terms.",
        "Motivated buyer with a clear timeline.",
        "Decided to buy but wants final reassurance.",
    ),
    ScenarioType.RELATIONSHIP_BUILDING: (
        "Looking for an agent to trust over the long term.",
        "Wants to understand the market before committing.",
        "Has future investments planned and wants a reliable partner.",
        "New to the city and needs help getting to know the neighbourhoods.",
    ),
    ScenarioType.DIFFICULT_CLIENT: (
        "Very demanding buyer with extremely high expectations.",
        "Has had many bad experiences with agents and does not trust easily.",
        "Very busy executive with no patience.",
        "Knows exactly what they want and will not accept less.",
    ),
    ScenarioType.FOLLOW_UP: (
        "Plans to buy within the next six to twelve months.",
        "Looking for an agent to trust over the long term.",
        "Was busy and could not continue the search.",
    ),
}

_BUDGETS: dict[Difficulty, tuple[str, ...]] = {
    Difficulty.EASY: ("$350k to $500k", "$400k to $650k", "Around $450k"),
    Difficulty.MEDIUM: ("$650k to $900k", "$550k to $800k", "Flexible, around $700k"),
    Difficulty.HARD: (
        "$200k to $300k (very tight)",
        "Over $1.5M (but expects hard bargaining)",
        "$700k, and the terms must be excellent",
    ),
}


# ---------------------------------------------------------------------------
# Greetings
# ---------------------------------------------------------------------------

# scenario -> personality -> templates; {name}, {budget}, {motivation} filled in
_GREETINGS: dict[ScenarioType, dict[Personality, tuple[str, ...]]] = {
    ScenarioType.PROPERTY_SHOWING: {
        Personality.FRIENDLY: (
            "Hi there! I booked a viewing with you, thanks for making the time.",
            "Hello! I'm the one who called yesterday about the apartment. Really looking forward to seeing it.",
        ),
        Personality.SKEPTICAL: (
            "Hello. I'm here for the viewing, but I'll be honest, I've seen plenty of places that didn't live up to the photos.",
            "Hi. I want to see it for myself. Listings never tell the whole story.",
        ),
        Personality.DEMANDING: (
            "Hello. I'm short on time, so let's get straight to it. Where's the property?",
            "Hi. I want to see everything in detail. My standards are high.",
        ),
        Personality.INDECISIVE: (
            "Hi... I came to see the place, though I'm honestly not sure yet what I want.",
            "Hello. I have so many options and I can't seem to pick one.",
        ),
        Personality.ANALYTICAL: (
            "Hello. I have a lot of questions about the floor area, location and services.",
            "Hi. I researched the area and have some specific questions. Shall we start?",
        ),
    },
    ScenarioType.PRICE_NEGOTIATION: {
        Personality.FRIENDLY: (
            "Hi! I really like the property, but the price is a bit above my budget of {budget}. Can we work something out?",
            "Hello! Lovely place. I'd just like to talk about the price a little.",
        ),
        Personality.SKEPTICAL: (
            "Hello. The asking price looks high compared to the market. How do you justify it?",
            "Hi. I've seen similar places for less. Why is this one so expensive?",
        ),
        Personality.DEMANDING: (
            "Hello. The price has to come down. I don't have time for long negotiations.",
            "Hi. Give me your best price up front. I don't like going round in circles.",
        ),
        Personality.INDECISIVE: (
            "Hi. The place is nice but I don't know if the price is right...",
            "Hello. It fits my budget, but I'm worried I'll regret it.",
        ),
        Personality.ANALYTICAL: (
            "Hello. I ran a market comparison and I have notes on the pricing. Can we go through them?",
            "Hi. Based on my analysis, the price needs adjusting.",
        ),
    },
    ScenarioType.OBJECTION_HANDLING: {
        Personality.FRIENDLY: (
            "Hi. I'm interested in the property, but I have a few concerns I'd like to discuss.",
        ),
        Personality.SKEPTICAL: (
            "Hello. Frankly I have a lot of doubts. Can you put my mind at ease?",
            "Hi. I've heard stories about agents who don't keep their word. Are you any different?",
        ),
        Personality.DEMANDING: (
            "Hello. I have problems with this offer and I want solutions now.",
        ),
        Personality.INDECISIVE: (
            "Hi. I'm interested but worried about so many things. I don't know how to decide.",
        ),
        Personality.ANALYTICAL: (
            "Hello. After my analysis I found weak points that need explaining.",
        ),
    },
    ScenarioType.FIRST_CONTACT: {
        Personality.FRIENDLY: (
            "Hi! I saw your listing and wanted to get in touch. I'm looking to {motivation}.",
            "Hello! A friend recommended you. Said your service is excellent.",
        ),
        Personality.SKEPTICAL: (
            "Hello. I'm looking for a reliable agent. How do I know you're the right one?",
        ),
        Personality.DEMANDING: (
            "Hi. I need an agent who understands my needs and works fast. Can you do that?",
        ),
        Personality.INDECISIVE: (
            "Hello. I'm thinking about buying but I don't know where to start.",
        ),
        Personality.ANALYTICAL: (
            "Hi. I want to understand the market before I begin. Do you have any data?",
        ),
    },
    ScenarioType.CLOSING_DEAL: {
        Personality.FRIENDLY: (
            "Hi! I've decided to buy. Let's talk about the next steps.",
        ),
        Personality.SKEPTICAL: (
            "Hello. I'm ready to go ahead, but I want everything in writing.",
        ),
        Personality.DEMANDING: (
            "Hello. I'm ready to sign, but I want the best possible terms.",
        ),
        Personality.INDECISIVE: (
            "Hi. I think I'm ready to decide... I just have a small hesitation.",
        ),
        Personality.ANALYTICAL: (
            "Hello. I've reviewed all the numbers and I'm ready for the final stage.",
        ),
    },
    ScenarioType.DIFFICULT_CLIENT: {
        Personality.FRIENDLY: (
            "Hello. I'm usually hard to please, but let's see what you have.",
        ),
        Personality.SKEPTICAL: (
            "Hi. I don't trust people easily. You'll have to prove yourself.",
        ),
        Personality.DEMANDING: (
            "Hello. My time is valuable and my expectations are high. Don't waste my time.",
        ),
        Personality.INDECISIVE: (
            "Hi. I don't know exactly what I want, but I'll know it when I see it.",
        ),
        Personality.ANALYTICAL: (
            "Hello. My criteria are very precise and I won't compromise on them.",
        ),
    },
}

_GENERIC_GREETINGS = (
    "Hello, I'm {name}. I'm looking to {motivation} and my budget is {budget}.",
    "Hi, {name} here. I'd like to hear what you can offer me.",
)


# ---------------------------------------------------------------------------
# Scenario context and trainee tips
# ---------------------------------------------------------------------------

_SCENARIO_CONTEXT: dict[ScenarioType, str] = {
    ScenarioType.PROPERTY_SHOWING: (
        "You are meeting a client for a property viewing. They booked after seeing the listing online."
    ),
    ScenarioType.PRICE_NEGOTIATION: (
        "The client likes the property but the price is above their budget. They want to negotiate terms."
    ),
    ScenarioType.OBJECTION_HANDLING: (
        "The client is interested in a property but has several concerns that must be addressed first."
    ),
    ScenarioType.FIRST_CONTACT: (
        "This is your first contact with the client about a property opportunity."
    ),
    ScenarioType.CLOSING_DEAL: (
        "The client is very interested and ready to discuss final terms and make an offer."
    ),
    ScenarioType.RELATIONSHIP_BUILDING: (
        "You are building a new relationship with a client looking for an agent to trust."
    ),
    ScenarioType.DIFFICULT_CLIENT: (
        "A difficult client with very high expectations who demands exceptional service."
    ),
    ScenarioType.FOLLOW_UP: (
        "You spoke with this client before and are following up. They are still weighing options."
    ),
}

_SCENARIO_TIPS: dict[ScenarioType, tuple[str, ...]] = {
    ScenarioType.PROPERTY_SHOWING: (
        "Listen carefully to understand the client's preferences",
        "Highlight the features that match their needs",
        "Be ready for detailed questions",
        "Watch how they react to different parts of the property",
    ),
    ScenarioType.PRICE_NEGOTIATION: (
        "Understand the limits of the client's budget",
        "Focus on value, not just price",
        "Have market comparisons ready",
        "Know your negotiation limits in advance",
    ),
    ScenarioType.OBJECTION_HANDLING: (
        "Listen to the end before responding",
        "Acknowledge the concern before addressing it",
        "Use specific examples and data",
        "Ask clarifying questions to find the real issue",
    ),
    ScenarioType.FIRST_CONTACT: (
        "Make a strong first impression quickly",
        "Ask open questions about their needs",
        "Respect their time",
        "Agree on next steps if they show interest",
    ),
    ScenarioType.CLOSING_DEAL: (
        "Summarise the benefits they cared about most",
        "Address any remaining concerns directly",
        "Explain the next steps in the process",
        "Create urgency without pressure",
    ),
    ScenarioType.RELATIONSHIP_BUILDING: (
        "Show genuine interest in the client as a person",
        "Ask about their family and future goals",
        "Share your market knowledge",
        "Be honest and transparent",
    ),
    ScenarioType.DIFFICULT_CLIENT: (
        "Stay calm and professional under pressure",
        "Listen to complaints without interrupting",
        "Focus on practical solutions",
        "Don't take criticism personally",
    ),
    ScenarioType.FOLLOW_UP: (
        "Refer back to your previous conversation",
        "Bring useful new information",
        "Be persistent without being pushy",
        "Listen for any change in their situation",
    ),
}

_ESTIMATED_MINUTES: dict[Difficulty, int] = {
    Difficulty.EASY: 10,
    Difficulty.MEDIUM: 15,
    Difficulty.HARD: 20,
}


def _canonical(scenario_type: ScenarioType) -> ScenarioType:
    return _SCENARIO_ALIASES.get(scenario_type, scenario_type)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def generate_name(rng: random.Random) -> str:
    return f"{rng.choice(_FIRST_NAMES)} {rng.choice(_FAMILY_NAMES)}"


def generate_persona(
    scenario_type: ScenarioType,
    difficulty: Difficulty,
    custom_config: dict[str, Any] | None = None,
    rng: random.Random | None = None,
) -> ClientPersona:
    """
    Build the client persona for a new session.

    ``custom_config`` keys (camelCase, as stored on the session record)
    shallow-override the generated fields.
    """
    rng = rng or random.Random()
    override = _SCENARIO_OVERRIDES.get(scenario_type, {})
    backgrounds = _BACKGROUNDS.get(_canonical(scenario_type), _BACKGROUNDS[ScenarioType.PROPERTY_SHOWING])

    persona = ClientPersona(
        name=generate_name(rng),
        background=rng.choice(backgrounds),
        personality=override.get("personality", _DIFFICULTY_PERSONALITY[difficulty]),
        budget=rng.choice(_BUDGETS[difficulty]),
        motivations=override.get("motivations", _DEFAULT_MOTIVATIONS),
        objections=override.get("objections", _DEFAULT_OBJECTIONS),
        hidden_concerns=_DEFAULT_HIDDEN_CONCERNS,
    )

    if custom_config:
        merged = persona.to_dict()
        merged.update(custom_config)
        persona = ClientPersona.from_dict(merged)
    return persona


def generate_initial_message(
    persona: ClientPersona,
    scenario_type: ScenarioType,
    rng: random.Random | None = None,
) -> str:
    """Pick the client's opening line for the scenario and fill in persona details."""
    rng = rng or random.Random()
    by_personality = _GREETINGS.get(_canonical(scenario_type), _GREETINGS[ScenarioType.PROPERTY_SHOWING])
    templates = by_personality.get(persona.personality) or _GENERIC_GREETINGS
    template = rng.choice(templates)
    motivation = persona.motivations[0].lower() if persona.motivations else "find the right property"
    return template.format(name=persona.name, budget=persona.budget, motivation=motivation)


def get_scenario_context(scenario_type: ScenarioType) -> str:
    return _SCENARIO_CONTEXT.get(
        _canonical(scenario_type), _SCENARIO_CONTEXT[ScenarioType.PROPERTY_SHOWING]
    )


def get_scenario_tips(scenario_type: ScenarioType) -> list[str]:
    return list(
        _SCENARIO_TIPS.get(_canonical(scenario_type), _SCENARIO_TIPS[ScenarioType.PROPERTY_SHOWING])
    )


def estimated_duration_minutes(difficulty: Difficulty) -> int:
    return _ESTIMATED_MINUTES.get(difficulty, 15)
