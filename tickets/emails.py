from django.conf import settings
from django.core.mail import EmailMultiAlternatives


def _dedupe(seq):
    seen = set()
    out = []
    for x in seq:
        if x and x not in seen:
            out.append(x)
            seen.add(x)
    return out


def ticket_url(ticket):
    base = getattr(settings, 'SITE_BASE_URL', 'http://127.0.0.1:8000').rstrip('/')
    return f"{base}/tickets/{ticket.id}/"


def send_plain(subject, body, to_list):
    to = _dedupe([e for e in to_list if e])
    if not to:
        return 0
    msg = EmailMultiAlternatives(
        subject=subject,
        body=body,
        from_email=getattr(settings, 'DEFAULT_FROM_EMAIL', None),
        to=to,
    )
    return msg.send(fail_silently=True)


def send_ticket_notice(ticket, users, title, message):
    body = f"{message}\n\n{ticket_url(ticket)}\n"
    return send_plain(f"[{ticket.ticket_number}] {title}", body, [u.email for u in users])
