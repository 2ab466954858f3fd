"""Fixed shape of a world arc.

An arc is fifteen beats. Three of them are anchors generated together when
the arc is created; the rest are dynamic beats filled in one at a time
between the anchors.

    0 ── 1..6 ── 7 ── 8..13 ── 14
    anchor     anchor       anchor
"""

from __future__ import annotations

from typing import List, NamedTuple, Optional

from worldarc.models.world import BeatType

ARC_LENGTH = 15
ANCHOR_INDICES = (0, 7, 14)


class BeatInfo(NamedTuple):
    index: int
    label: str
    purpose: str


# World-scale adaptation of the Save the Cat beat sheet. The purpose text is
# injected verbatim into the dynamic beat prompt, so keep it to one line.
BEAT_STRUCTURE: List[BeatInfo] = [
    BeatInfo(0, "Opening Image", "Show the world's baseline and latent tensions."),
    BeatInfo(1, "Rising Tensions", "First hints of instability; stakes still low."),
    BeatInfo(2, "First Tremors", "Contained disturbance foreshadows greater upheaval."),
    BeatInfo(3, "Catalyst", "Irreversible incident that forces change."),
    BeatInfo(4, "Shock Waves", "Immediate fallout; different regions react."),
    BeatInfo(5, "Systems Fail", "Old structures cannot cope; disorder spreads."),
    BeatInfo(6, "Power Vacuum", "Leadership contested; new factions emerge."),
    BeatInfo(7, "Turning Point", "Mid-arc pivot redefining the core conflict."),
    BeatInfo(8, "New Alliances", "World reorganises around the new paradigm."),
    BeatInfo(9, "Emerging Order", "Patterns form; winners and losers apparent."),
    BeatInfo(10, "The Struggle", "Final resistance to inevitable change."),
    BeatInfo(11, "Final Conflict", "Climactic confrontation decides fate."),
    BeatInfo(12, "The Synthesis", "Lessons integrated; new order internalised."),
    BeatInfo(13, "New Dawn", "Transformed equilibrium, calm after the storm."),
    BeatInfo(14, "Future Seeds", "Tease next cycle; unresolved tension remains."),
]


def is_anchor_index(index: int) -> bool:
    return index in ANCHOR_INDICES


def beat_type_for(index: int) -> BeatType:
    """Return the only beat type allowed at *index*."""
    if not 0 <= index < ARC_LENGTH:
        raise ValueError(f"Beat index {index} outside 0..{ARC_LENGTH - 1}")
    return BeatType.ANCHOR if is_anchor_index(index) else BeatType.DYNAMIC


def beat_info(index: int) -> Optional[BeatInfo]:
    if 0 <= index < len(BEAT_STRUCTURE):
        return BEAT_STRUCTURE[index]
    return None
