import logging

logger = logging.getLogger(__name__)


class BaseBackend:
    """
    Delivers one text message to one mobile number.

    Subclasses raise on delivery failure; the caller records the failure.
    """

    def __init__(self, channel):
        self.channel = channel

    def send(self, mobile, message):
        raise NotImplementedError('Notification backends must implement send().')


class LoggingBackend(BaseBackend):
    def send(self, mobile, message):
        logger.info(f"[{self.channel}] to {mobile}: {message}")

