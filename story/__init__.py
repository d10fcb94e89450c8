"""Story state: value types, pure context transformations, seeded generation."""

from . import context_store
from .models import SEED_PATTERN, Choice, StoryBeat, StoryContext, validate_seed
from .rng import WorldState, generate_world, hash_string_to_seed, mulberry32, offline_beat

__all__ = [
    "SEED_PATTERN",
    "Choice",
    "StoryBeat",
    "StoryContext",
    "validate_seed",
    "context_store",
    "WorldState",
    "generate_world",
    "hash_string_to_seed",
    "mulberry32",
    "offline_beat",
]
