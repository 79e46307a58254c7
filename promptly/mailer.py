import os
import logging
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:3000').rstrip('/')


def reset_link(token: str, email: str) -> str:
    return f"{FRONTEND_URL}/password-reset/{token}?{urlencode({'email': email})}"


class Mailer:
    async def send_password_reset(self, email: str, token: str) -> None:
        raise NotImplementedError


class LogMailer(Mailer):
    """Writes outgoing mail to the application log instead of delivering it"""

    async def send_password_reset(self, email: str, token: str) -> None:
        logger.info({'msg': 'password_reset_link', 'email': email, 'link': reset_link(token, email)})


_mailer: Mailer | None = None


def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        _mailer = LogMailer()
    return _mailer
