"""Error hierarchy for formicary.

Only configuration problems raise. Conditions inside the tick loop (grid
boundaries, lookup misses, failed respawns) are reported as sentinel values.
"""


class FormicaryError(Exception):
    """Base for all formicary errors."""

    pass


class ConfigError(FormicaryError):
    """Configuration could not be loaded or failed validation."""

    pass
