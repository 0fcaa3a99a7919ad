"""
RedBoat Hotel - Envío de Emails
===============================

Canal SMTP para códigos de verificación, recuperación de contraseña y
avisos de reservas. Si SMTP_HOST está vacío el envío queda deshabilitado
y solo se registra en el log.
"""

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from config import SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD, SMTP_FROM, SMTP_USE_TLS
from logging_config import get_logger

logger = get_logger(__name__)


def is_enabled() -> bool:
    return bool(SMTP_HOST)


def send_email(recipient: str, subject: str, content: str, content_type: str = "plain") -> bool:
    """
    Envía un email.

    Args:
        recipient: Dirección del destinatario
        subject: Asunto
        content: Cuerpo del mensaje
        content_type: 'plain' o 'html'

    Returns:
        True si el servidor aceptó el mensaje. Los fallos se registran y
        devuelven False: un email perdido nunca rompe la operación que lo originó.
    """
    if not is_enabled():
        logger.debug(f"SMTP deshabilitado, email a {recipient} omitido: {subject}")
        return False

    try:
        msg = MIMEMultipart()
        msg["From"] = SMTP_FROM or SMTP_USER
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.attach(MIMEText(content, content_type, "utf-8"))

        with smtplib.SMTP(SMTP_HOST, SMTP_PORT) as server:
            if SMTP_USE_TLS:
                server.starttls()
            if SMTP_USER:
                server.login(SMTP_USER, SMTP_PASSWORD)
            server.send_message(msg)

        logger.info(f"Email enviado a {recipient}: {subject}")
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"No se pudo enviar email a {recipient}: {e}")
        return False


def send_verification_code(recipient: str, code: str) -> bool:
    content = (
        "Welcome to RedBoat Hotel!\n\n"
        f"Your verification code is: {code}\n\n"
        "The code expires in 10 minutes."
    )
    return send_email(recipient, "Verify your email", content)


def send_password_reset_code(recipient: str, code: str) -> bool:
    content = (
        "We received a request to reset your password.\n\n"
        f"Your reset code is: {code}\n\n"
        "The code expires in 10 minutes. If you did not request it, ignore this email."
    )
    return send_email(recipient, "Password reset code", content)


def send_notification_email(recipient: str, message: str) -> bool:
    return send_email(recipient, "RedBoat Hotel notification", message)
