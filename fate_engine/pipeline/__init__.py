"""Turn pipeline.

Executes one player turn from a GameState:
  1. Progression calculator computes the turn context (years, milestone,
     sub-turn, narrative pressure).
  2. The current phase's handler runs:
       early_life_start       birth narrative, no oracle, no time passes
       time_block_allocation  hobby choice → stat/trait effects → jump to age 8
       otherwise              narrative oracle (fallback on failure) → event →
                              mutations → memory → callbacks → advance time
  3. Phase transition when the new age enters a later life phase.
  4. Narrative history is extended with the turn's lines.

Phase handlers are plain async functions in a GamePhase → handler map built
once by build_phase_handlers() and passed to run_turn().
"""

from .orchestrator import play_turn, run_turn  # noqa: F401
from .phases import CHILDHOOD_CHOICES, PhaseHandler, build_phase_handlers  # noqa: F401
