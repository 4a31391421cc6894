import hashlib
import logging

from fastapi import APIRouter, Request

from shareskippy.adapters.rate_limit.profiles import contact_key_generator
from shareskippy.core.rate_limit import enforce_rate_limit
from shareskippy.schemas.contact import ContactRequest, ContactResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Contact"])


@router.post("/contact", response_model=ContactResponse)
async def submit_contact(payload: ContactRequest, request: Request) -> ContactResponse:
    """Accept a contact form submission.

    Only submissions that pass validation and leave the honeypot empty
    count against the client's contact quota. Honeypot hits are
    acknowledged without being processed.

    Returns:
        ContactResponse: ``{"ok": true}`` once the submission is accepted.

    Raises:
        RateLimitAppError: 429 when the client exceeded its contact quota.
    """
    if payload.is_bot:
        logger.info("contact.honeypot_triggered", extra={"category": payload.category})
        return ContactResponse(ok=True)

    enforce_rate_limit("contact", request)

    sender_hash = hashlib.sha256(contact_key_generator(request).encode()).hexdigest()[:16]
    logger.info(
        "contact.received",
        extra={
            "category": payload.category,
            "subject_length": len(payload.subject),
            "message_length": len(payload.message),
            "sender_hash": sender_hash,
        },
    )
    return ContactResponse(ok=True)
