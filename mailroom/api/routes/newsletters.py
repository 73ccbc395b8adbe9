"""Admin newsletter routes.

GET  /admin/newsletters renders the publish form with a fresh idempotency key.
POST /admin/newsletters publishes an issue; duplicates of the same key get
the first response back unchanged.
"""
from __future__ import annotations

import html
import logging
from pathlib import Path
from string import Template
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, Response

from mailroom.api.auth import get_current_user_id
from mailroom.api.deps import get_delivery_worker, get_publisher
from mailroom.core.errors import TransientDeliveryError, UnexpectedError, ValidationError
from mailroom.core.http import clear_flash, read_flash
from mailroom.core.settings import get_settings
from mailroom.delivery.worker import DeliveryWorker
from mailroom.publishing.publisher import NewsletterPublisher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/newsletters", tags=["newsletters"])

_TEMPLATE_PATH = Path(__file__).resolve().parents[2] / "templates" / "newsletter_form.html"


def _render_form(flash_message: str | None) -> str:
    flash_html = f"<p><i>{html.escape(flash_message)}</i></p>" if flash_message else ""
    template = Template(_TEMPLATE_PATH.read_text(encoding="utf-8"))
    return template.safe_substitute(flash_html=flash_html, idempotency_key=str(uuid4()))


@router.get("", response_class=HTMLResponse, summary="Publish newsletter form")
def publish_newsletter_form(
    request: Request,
    user_id: UUID = Depends(get_current_user_id),
):
    flash_message = read_flash(request)
    response = HTMLResponse(_render_form(flash_message))
    if flash_message is not None:
        clear_flash(response)
    return response


@router.post("", summary="Publish a newsletter issue")
def publish_newsletter(
    title: str | None = Form(default=None),
    html_content: str | None = Form(default=None),
    text_content: str | None = Form(default=None),
    idempotency_key: str | None = Form(default=None),
    user_id: UUID = Depends(get_current_user_id),
    publisher: NewsletterPublisher = Depends(get_publisher),
    worker: DeliveryWorker = Depends(get_delivery_worker),
) -> Response:
    try:
        result = publisher.publish(user_id, idempotency_key, title, html_content, text_content)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except UnexpectedError as exc:
        logger.error("Publishing failed for user %s: %s", user_id, exc)
        raise HTTPException(status_code=500, detail="Failed to publish the newsletter issue")

    if get_settings().inline_delivery and not result.replayed:
        try:
            worker.drain(result.issue_id)
        except TransientDeliveryError as exc:
            logger.error("Inline delivery of issue %s stopped: %s", result.issue_id, exc)
            raise HTTPException(
                status_code=500,
                detail="The issue was published but some emails could not be sent yet",
            )

    return result.response.to_response()
