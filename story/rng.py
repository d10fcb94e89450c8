# story/rng.py
"""Deterministic seeded world and beat generation.

Used by the offline provider so a session can always continue without a
network. The same seed and story position always produce the same beat.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF

ROLES = (
    "Hero (Pending)",
    "Suspicious Stranger",
    "Background Character, L3",
    "Plot Device, Handle With Care",
)
DESTINATIONS = (
    "Checkpoint City",
    "Undesignated Territory 7",
    "Harbor of Revisions",
    "The Stray Road",
)
GENRES = (
    "liminal realism",
    "administrative horror",
    "transit mystery",
    "bureaucratic surrealism",
)
SENSES = ("neon", "dust", "sea-wet air", "library quiet", "violet dusk")
BEATS_YES = (
    "A guard wavers; the clipboard dims.",
    "A side door clicks open, unmarked.",
    "Someone nods as if they expected you.",
)
BEATS_NO = (
    "The line of passengers rustles like paper.",
    "A siren purrs but never rises.",
    "Footsteps multiply in the hall.",
)
HOOKS = (
    "Follow the whispering lawyer?",
    "Trust the teen with the notebook?",
    "Take the unlit stair?",
    "Ask the driver what he knows?",
)
ENDINGS = (
    "The room exhales. Your story opens elsewhere.",
    "The road bends and forgets you were chased.",
)
ENDING_CHANCE = 0.06


def _imul(a: int, b: int) -> int:
    """32-bit integer multiply, wrapping like C."""
    return (a * b) & _MASK32


def hash_string_to_seed(text: str) -> int:
    """32-bit FNV-1a hash of ``text``."""
    h = 2166136261
    for ch in text:
        h ^= ord(ch)
        h = _imul(h, 16777619)
    return h


def mulberry32(seed: int) -> Callable[[], float]:
    """Return a Mulberry32 generator yielding floats in [0, 1)."""
    state = seed & _MASK32

    def next_float() -> float:
        nonlocal state
        state = (state + 0x6D2B79F5) & _MASK32
        t = state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296

    return next_float


def pick(rng: Callable[[], float], items: Sequence[T]) -> T:
    """Pick one element of ``items`` using ``rng``."""
    if not items:
        raise ValueError("Cannot pick from an empty sequence")
    return items[int(rng() * len(items))]


@dataclass(frozen=True)
class WorldState:
    seed: str
    player_role: str
    destination: str
    genre: str


def generate_world(seed: str) -> WorldState:
    """Derive the fixed world facts for ``seed``."""
    rng = mulberry32(hash_string_to_seed(seed))
    return WorldState(
        seed=seed,
        player_role=pick(rng, ROLES),
        destination=pick(rng, DESTINATIONS),
        genre=pick(rng, GENRES),
    )


def offline_beat(rng: Callable[[], float], last_choice: str | None) -> str:
    """Generate one beat ending in ``(Y/N)`` or, rarely, ``(Restart?)``."""
    if rng() < ENDING_CHANCE:
        return f"{pick(rng, ENDINGS)} (Restart?)"

    sense = pick(rng, SENSES)
    beat = pick(rng, BEATS_YES if last_choice == "Y" else BEATS_NO)
    hook = pick(rng, HOOKS)
    return f"{beat} The air tastes of {sense}. {hook} (Y/N)"
