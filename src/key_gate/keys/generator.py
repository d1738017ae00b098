"""Random key string generation."""

import re
import secrets

from key_gate.config.keys import MIN_KEY_ENTROPY_BITS


class KeyGenerator:
    """Draws key strings such as ``FREE_1A2B3C-4D5E6F-A7B8C9-0D1E2F``.

    Each segment is fresh output of the OS CSPRNG rendered as uppercase hex.
    No clock or counter is involved, so two draws are independent.
    """

    def __init__(
        self,
        prefix: str = "FREE",
        segments: int = 4,
        segment_bytes: int = 3,
    ) -> None:
        if segments * segment_bytes * 8 < MIN_KEY_ENTROPY_BITS:
            raise ValueError(
                f"Key format must carry at least {MIN_KEY_ENTROPY_BITS} random bits"
            )
        self.prefix = prefix
        self.segments = segments
        self.segment_bytes = segment_bytes
        hex_len = segment_bytes * 2
        self.pattern = re.compile(
            rf"^{re.escape(prefix)}_[0-9A-F]{{{hex_len}}}"
            rf"(?:-[0-9A-F]{{{hex_len}}}){{{segments - 1}}}$"
        )

    def generate(self) -> str:
        parts = [
            secrets.token_bytes(self.segment_bytes).hex().upper()
            for _ in range(self.segments)
        ]
        return f"{self.prefix}_{'-'.join(parts)}"
