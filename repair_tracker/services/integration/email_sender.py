"""
Email Sender
============

Kirim email lewat SMTP. Synchronous (smtplib); panggil dari kode async
pakai ``asyncio.to_thread``.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Any, Dict, List, Optional

from ..exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class SMTPEmailSender:
    def __init__(self, email_config: Dict[str, Any]):
        self.email_config = email_config

    def send(self, to_address: str, subject: str, body: str,
             cc: Optional[List[str]] = None, in_reply_to: Optional[str] = None) -> str:
        """Kirim satu email. Return Message-ID yang dipakai (untuk threading)."""
        sender = self.email_config['smtp_from']
        domain = sender.split('@')[-1] if '@' in sender else None
        message_id = make_msgid(domain=domain)

        msg = MIMEMultipart()
        msg['From'] = sender
        msg['To'] = to_address
        msg['Subject'] = subject
        msg['Message-ID'] = message_id
        if cc:
            msg['Cc'] = ', '.join(cc)
        if in_reply_to:
            msg['In-Reply-To'] = in_reply_to
            msg['References'] = in_reply_to
        msg.attach(MIMEText(body, 'html' if '<' in body and '>' in body else 'plain'))

        try:
            with smtplib.SMTP(self.email_config['smtp_host'], self.email_config['smtp_port']) as server:
                if self.email_config.get('smtp_use_tls'):
                    server.starttls()
                if self.email_config.get('smtp_username'):
                    server.login(self.email_config['smtp_username'], self.email_config['smtp_password'])
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise ExternalServiceError('EMAIL', f"Failed to send email: {str(e)}")

        logger.info(f"Email sent to {to_address} ({message_id})")
        return message_id
