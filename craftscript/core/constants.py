"""Centralised tunables and magic numbers.

All numeric constants that control runtime behaviour are collected here
so they are easy to find, document, and adjust.
"""

# ---------------------------------------------------------------------------
# Runner  (craftscript/core/runner.py)
# ---------------------------------------------------------------------------
DEFAULT_OP_LIMIT     = 10_000    # atomic commands per run
DEFAULT_SCAN_RADIUS  = 2         # blocks, for auto-scan before spatial ops
MAX_ITERATIONS       = 100_000   # hard limit for repeat / while bodies
MAX_FUNCTION_DEPTH   = 10        # nested custom-function calls
MAX_MACRO_DEPTH      = 64        # nested (possibly recursive) macro calls


# ---------------------------------------------------------------------------
# Player  (craftscript/core/player.py)
# ---------------------------------------------------------------------------
MAX_FINISHED_JOBS    = 100       # finished jobs kept for status(); oldest dropped first


# ---------------------------------------------------------------------------
# Language  (craftscript/core/grammar.py, parser.py)
# ---------------------------------------------------------------------------
KEYWORDS = frozenset({
    "macro", "if", "else", "repeat", "while", "assert", "let", "true", "false",
})

# Predicates answered by the runner itself, not the command table
BUILTIN_PREDICATES = frozenset({"last_ok", "last_error"})

# ---------------------------------------------------------------------------
# Collaborators  (waypoints.py, functions.py)
# ---------------------------------------------------------------------------
WAYPOINT_FILE_SUFFIX = "_waypoints.json"
ITEM_NAMESPACE       = "minecraft:"
