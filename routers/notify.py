# routers/notify.py
from fastapi import APIRouter

from schemas.notify import EmailPreview, NotifyRequest, NotifyResponse
from services.notifications import send_notification_email

router = APIRouter(prefix="/api/notify", tags=["notifications"])


@router.post("", response_model=NotifyResponse, summary="Send a notification email")
def notify(body: NotifyRequest):
     email = send_notification_email(body.to, body.type, body.data)
     return NotifyResponse(
          sent=email.sent,
          message="Notification sent" if email.sent else "Notification queued",
          preview=EmailPreview(subject=email.subject, body=email.body),
     )
