"""Approximate token counting for memory budgets."""

CHARS_PER_TOKEN = 4  # Cross-model estimate (EN text/code/JSON)


def estimate_tokens(text: str) -> int:
    """Estimate token count from character count."""
    return len(text) // CHARS_PER_TOKEN


class TokenCounter:
    """Token-count capability passed explicitly to the components that need it.

    Wraps the stateless ``len // chars_per_token`` estimator; acquiring and
    releasing only toggles whether counting is allowed. The counter is a scoped resource: it must be acquired before use and
    released when the owner shuts down. It can be used as a context manager::

        with TokenCounter() as counter:
            counter.count("hello world")

    Counting on a released counter raises ``RuntimeError``.
    """

    def __init__(self, chars_per_token: int = CHARS_PER_TOKEN):
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        self.chars_per_token = chars_per_token
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def acquire(self) -> "TokenCounter":
        """Mark the counter as in use. Idempotent."""
        self._active = True
        return self

    def release(self) -> None:
        """Release the counter. Idempotent."""
        self._active = False

    def __enter__(self) -> "TokenCounter":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def count(self, text: str) -> int:
        """Count tokens in a string."""
        if not self._active:
            raise RuntimeError("TokenCounter used after release (call acquire() first)")
        return len(text) // self.chars_per_token

    def count_many(self, texts: list[str]) -> int:
        """Count tokens across several strings."""
        return sum(self.count(t) for t in texts)

    def truncate(self, text: str, max_tokens: int) -> tuple[str, int]:
        """Cut text down to at most ``max_tokens`` tokens.

        Returns:
            Tuple of (possibly truncated text, its token count).
        """
        tokens = self.count(text)
        if tokens <= max_tokens:
            return text, tokens
        cut = max(max_tokens, 0) * self.chars_per_token
        return text[:cut], max(max_tokens, 0)
