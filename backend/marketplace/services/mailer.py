import smtplib
from decimal import Decimal
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import formataddr

from marketplace.core.config import settings
from marketplace.core.logging_config import get_logger

log = get_logger(__name__)


def format_brl(amount) -> str:
    """Decimal("1234.5") -> "R$ 1.234,50"."""
    value = f"{Decimal(amount):,.2f}"
    return "R$ " + value.replace(",", "_").replace(".", ",").replace("_", ".")


def confirmation_link(token: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/confirm?token={token}"


def build_order_confirmation_email(
    recipient_name: str,
    order_number: str,
    total_amount,
    token: str,
) -> tuple[str, str]:
    subject = f"Confirme seu pedido #{order_number}"
    link = confirmation_link(token)
    body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Confirmação de Pedido</title></head>
<body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: 0 auto;">
  <h1>Pedido Realizado!</h1>
  <p>Olá <strong>{recipient_name}</strong>,</p>
  <p>Recebemos seu pedido. Para finalizar sua compra, confirme o pagamento no link abaixo.</p>
  <table>
    <tr><td>Número do Pedido:</td><td><strong>{order_number}</strong></td></tr>
    <tr><td>Valor Total:</td><td><strong>{format_brl(total_amount)}</strong></td></tr>
    <tr><td>Status:</td><td>AGUARDANDO CONFIRMAÇÃO</td></tr>
  </table>
  <p><a href="{link}">Confirmar Pagamento</a></p>
  <p><strong>Importante:</strong> este link é válido por {settings.TOKEN_TTL_HOURS} horas.
  Após a confirmação, os produtos saem do estoque e seu pedido é processado.</p>
  <p>Se você não realizou este pedido, pode ignorar este email.</p>
</body>
</html>
"""
    return subject, body


def send_email(to_addr: str, subject: str, html_body: str) -> None:
    """Sends one HTML message over SMTP. Raises on any SMTP/connection error."""
    msg = MIMEMultipart()
    msg["From"] = formataddr((settings.EMAIL_SENDER_NAME, settings.EMAIL_SENDER))
    msg["To"] = to_addr
    msg["Subject"] = subject
    msg.attach(MIMEText(html_body, "html", "utf-8"))

    log.info(f"Sending email to {to_addr} with subject '{subject}'")
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT) as server:
        if settings.SMTP_USE_TLS:
            server.starttls()
        if settings.SMTP_USER and settings.SMTP_PASS:
            server.login(settings.SMTP_USER, settings.SMTP_PASS)
        server.sendmail(settings.EMAIL_SENDER, [to_addr], msg.as_string())
