"""Long-term memory for a simulated life.

Per recorded event:
  1. evaluator  scores significance, valence and type; links associations
  2. themes     detects, reinforces and decays recurring life themes
  3. store      enforces the 100-memory cap and the 10-entry core set
Per turn:
  4. retriever  ranks stored memories against the current GameContext
  5. callbacks  turns the top-ranked memories into narrative callbacks
"""

from .callbacks import (  # noqa: F401
    CALLBACK_MARKER,
    MemoryCallback,
    format_callback,
    generate_callbacks,
    strongest_thematic_callback,
)
from .evaluator import evaluate_event  # noqa: F401
from .retriever import (  # noqa: F401
    NarrativeMemories,
    memories_for_narrative,
    relevant_memories,
    touch_memory,
)
from .store import MAX_CORE_MEMORIES, MAX_MEMORIES, evict_memories, remember_event  # noqa: F401
from .themes import active_themes, detect_themes, emerging_themes, theme_narrative  # noqa: F401
