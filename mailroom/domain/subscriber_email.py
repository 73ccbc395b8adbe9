from __future__ import annotations

from dataclasses import dataclass

from email_validator import EmailNotValidError, validate_email


@dataclass(frozen=True, slots=True)
class SubscriberEmail:
    """An address that passed syntax validation (no DNS lookups)."""

    value: str

    @classmethod
    def parse(cls, raw: str | None) -> SubscriberEmail:
        """Return the normalized address or raise ``ValueError``."""
        if raw is None or not raw.strip():
            raise ValueError("subscriber email is empty")
        try:
            result = validate_email(raw.strip(), check_deliverability=False)
        except EmailNotValidError as exc:
            raise ValueError(f"{raw!r} is not a valid subscriber email: {exc}") from exc
        return cls(result.normalized)

    def __str__(self) -> str:
        return self.value
