from __future__ import annotations

from dataclasses import dataclass

from mailroom.core.errors import ValidationError

MAX_KEY_LENGTH = 50


@dataclass(frozen=True, slots=True)
class IdempotencyKey:
    value: str

    @classmethod
    def parse(cls, raw: str | None) -> IdempotencyKey:
        if raw is None or not raw.strip():
            raise ValidationError("The idempotency key cannot be empty")
        if len(raw) > MAX_KEY_LENGTH:
            raise ValidationError(
                f"The idempotency key must be at most {MAX_KEY_LENGTH} characters long"
            )
        return cls(raw)

    def __str__(self) -> str:
        return self.value
