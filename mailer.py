import logging
from abc import ABC, abstractmethod


logger = logging.getLogger(__name__)


class Mailer(ABC):
    @abstractmethod
    def send_otp(self, email: str, otp: str) -> None:
        """Deliver a password-reset code out of band."""


class LogMailer(Mailer):
    """Development mailer: records the delivery in the log only."""

    def send_otp(self, email: str, otp: str) -> None:
        logger.info(f"otp_mail: to={email} code={otp}")
