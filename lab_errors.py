"""
Exceptions raised by the instanton growth engine.
"""


class UnsupportedVariant(ValueError):
    """Raised for a potential family or seed shape outside the known set."""

    def __init__(self, kind, value, choices):
        self.kind = kind
        self.value = value
        self.choices = tuple(choices)
        super().__init__(
            f"Unknown {kind}: {value!r} (expected one of {', '.join(self.choices)})"
        )


class FieldDivergence(FloatingPointError):
    """Raised when a step produces non-finite field values under the 'halt' policy."""

    def __init__(self, step, n_bad):
        self.step = step
        self.n_bad = n_bad
        super().__init__(f"Field diverged at step {step}: {n_bad} non-finite cells")
