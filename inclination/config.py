"""Configuration for the Management Inclination Benchmark."""

import os
from typing import Any

from dotenv import load_dotenv

load_dotenv()

# OpenRouter API key
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")

# OpenRouter API endpoint
OPENROUTER_API_URL = os.getenv(
    "OPENROUTER_API_URL", "https://openrouter.ai/api/v1/chat/completions"
)

# Per-request timeout for streaming completions, in seconds
OPENROUTER_TIMEOUT = float(os.getenv("OPENROUTER_TIMEOUT", "120"))

# Base data directory - configurable via environment
DATA_BASE_DIR = os.getenv("INCLINATION_DATA_DIR", "data")

# Document store collections
DISCUSSIONS_COLLECTION = "management-inclination-discussions"
LEADERBOARD_COLLECTION = "management-inclination-leaderboard"
LEADERBOARD_DOC_ID = "leaderboard"

# Discussion setup limits
DEFAULT_ROUNDS = 3
MIN_ROUNDS = 2
MAX_ROUNDS = 5
MAX_INSTANCES_PER_MODEL = 3
MIN_PARTICIPANTS = 2

# Prompt history excerpts are cut to this many characters
COMMENT_EXCERPT_LENGTH = 250

# Text stored in place of a comment or vote when the provider fails
DISCUSSION_FAILURE_TEXT = (
    "[This AI assistant was unable to provide feedback due to a technical issue]"
)
VOTING_FAILURE_TEXT = (
    "[This AI assistant was unable to vote due to a technical issue]"
)

# Leaderboard aggregate update rule: "weighted" (count-weighted running average)
# or "pairwise" (average of the stored balance and the new sample).
LEADERBOARD_AVERAGING = os.getenv("INCLINATION_LEADERBOARD_AVERAGING", "weighted").lower()

# Models that can take part in a discussion
AVAILABLE_MODELS: list[dict[str, str]] = [
    {"id": "gemini", "name": "Gemini", "api_id": "google/gemini-flash-1.5"},
    {"id": "claude", "name": "Claude", "api_id": "anthropic/claude-3-haiku"},
    {"id": "llama", "name": "Llama", "api_id": "meta-llama/llama-3-70b-instruct"},
    {"id": "gpt4", "name": "GPT-4", "api_id": "openai/gpt-4o-mini"},
    {"id": "mistral", "name": "Mistral", "api_id": "mistralai/mistral-nemo"},
    {"id": "qwen", "name": "Qwen", "api_id": "qwen/qwen-2.5-7b-instruct"},
    {"id": "deepseek", "name": "DeepSeek", "api_id": "deepseek/deepseek-chat"},
]

# Ready-made management tensions
PREDEFINED_TENSIONS: list[dict[str, str]] = [
    {
        "concept_a": "Explore",
        "concept_b": "Exploit",
        "context": (
            "Your company needs to decide how to allocate resources between "
            "exploring new opportunities versus exploiting existing ones."
        ),
        "option_a": "Invest significantly in R&D to discover new market opportunities",
        "option_b": "Focus on optimizing and scaling current successful product lines",
    },
    {
        "concept_a": "Compete",
        "concept_b": "Collaborate",
        "context": "You need to decide how to approach a new market entry strategy.",
        "option_a": "Aggressively compete against existing players to gain market share",
        "option_b": "Seek strategic partnerships and collaborations with established players",
    },
    {
        "concept_a": "Centralize",
        "concept_b": "Decentralize",
        "context": "Your organization is restructuring decision-making processes.",
        "option_a": "Establish centralized authority for consistency and control",
        "option_b": "Distribute decision-making authority to empower local teams",
    },
    {
        "concept_a": "Standardize",
        "concept_b": "Customize",
        "context": "Your product team is defining the approach for a global product.",
        "option_a": "Create standardized offerings for efficiency and consistency",
        "option_b": "Develop customized solutions for different market segments",
    },
    {
        "concept_a": "Short-term",
        "concept_b": "Long-term",
        "context": "Your organization needs to set investment priorities.",
        "option_a": "Focus on initiatives that deliver immediate returns this fiscal year",
        "option_b": "Invest in long-term strategic capabilities that may take years to mature",
    },
]


def get_model_info(model_id: str) -> dict[str, Any] | None:
    """
    Look up a model in the catalogue.

    Args:
        model_id: Catalogue identifier (e.g., "claude")

    Returns:
        Model dict with id, name and api_id, or None if unknown
    """
    for model in AVAILABLE_MODELS:
        if model["id"] == model_id:
            return model
    return None


def get_tension(concept_a: str, concept_b: str) -> dict[str, str] | None:
    """Find a predefined tension by its concept labels (case-insensitive)."""
    for tension in PREDEFINED_TENSIONS:
        if (
            tension["concept_a"].lower() == concept_a.lower()
            and tension["concept_b"].lower() == concept_b.lower()
        ):
            return tension
    return None

