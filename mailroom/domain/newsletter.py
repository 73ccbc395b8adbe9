from __future__ import annotations

from dataclasses import dataclass

from mailroom.core.errors import ValidationError


@dataclass(frozen=True, slots=True)
class NewsletterContent:
    title: str
    html_content: str
    text_content: str

    @classmethod
    def parse(
        cls,
        title: str | None,
        html_content: str | None,
        text_content: str | None,
    ) -> NewsletterContent:
        """Reject the submission when any field is missing or blank."""
        fields = {"title": title, "html_content": html_content, "text_content": text_content}
        missing = [name for name, value in fields.items() if value is None or not value.strip()]
        if missing:
            raise ValidationError(f"Missing or empty newsletter fields: {', '.join(missing)}")
        return cls(title=title, html_content=html_content, text_content=text_content)
