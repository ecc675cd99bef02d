"""Delivery of failure digests by email and webhook."""

import logging
import smtplib
import time
from datetime import datetime
from email.mime.text import MIMEText

import requests

from webprobe.config import NotificationsConfig, SmtpConfig, WebhookConfig
from webprobe.models import FailureDigest
from webprobe.records import record_to_dict

logger = logging.getLogger(__name__)


class EmailNotifier:
    """Sends digests as plain-text email through SMTP."""

    def __init__(self, config: SmtpConfig, max_retries: int = 3, retry_delay: int = 2) -> None:
        """Initialize the notifier.

        Args:
            config: SMTP configuration.
            max_retries: Maximum number of retry attempts per recipient.
            retry_delay: Base delay in seconds between retries (increases exponentially).
        """
        self._config = config
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    def _build_message(self, digest: FailureDigest, to_addr: str) -> MIMEText:
        msg = MIMEText(digest.body, "plain", "utf-8")
        msg["Subject"] = digest.subject
        msg["From"] = self._config.from_addr
        msg["To"] = to_addr
        return msg

    def _deliver(self, to_addr: str, message: str) -> None:
        smtp = self._config
        server = smtplib.SMTP(smtp.host, smtp.port, timeout=30)
        try:
            if smtp.use_tls:
                server.starttls()
            if smtp.username and smtp.password:
                server.login(smtp.username, smtp.password)
            server.sendmail(smtp.from_addr, [to_addr], message)
        finally:
            server.quit()

    def send(self, digest: FailureDigest, recipients: list[str]) -> bool:
        """Email the digest to each recipient separately.

        Returns:
            True if every recipient was reached.
        """
        delivered = True
        for to_addr in recipients:
            message = self._build_message(digest, to_addr).as_string()
            retry_count = 0
            while True:
                try:
                    self._deliver(to_addr, message)
                    logger.info("Failure digest emailed to %s", to_addr)
                    break
                except (smtplib.SMTPException, OSError) as e:
                    retry_count += 1
                    if retry_count > self._max_retries:
                        logger.error("Email to %s failed after %d attempts: %s", to_addr, retry_count, e)
                        delivered = False
                        break
                    delay = self._retry_delay * (2 ** (retry_count - 1))
                    logger.warning(
                        "Email to %s failed (attempt %d/%d, retrying in %ds): %s",
                        to_addr,
                        retry_count,
                        self._max_retries + 1,
                        delay,
                        e,
                    )
                    time.sleep(delay)
        return delivered


class WebhookNotifier:
    """Posts digests as JSON to a webhook URL."""

    def __init__(self, config: WebhookConfig, max_retries: int = 3, retry_delay: int = 2) -> None:
        self._config = config
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    @staticmethod
    def build_payload(digest: FailureDigest, recipients: list[str]) -> dict:
        """Build the webhook payload for a digest."""
        return {
            "event": "checks_failed",
            "subject": digest.subject,
            "failure_count": len(digest.failures),
            "recipients": list(recipients),
            "failures": [record_to_dict(record) for record in digest.failures],
            "text": digest.body,
            "sent_at": datetime.now().astimezone().isoformat(),
        }

    def send(self, digest: FailureDigest, recipients: list[str]) -> bool:
        """Post the digest, retrying with exponential backoff.

        Returns:
            True if the webhook accepted the payload.
        """
        payload = self.build_payload(digest, recipients)
        retry_count = 0

        while retry_count <= self._max_retries:
            try:
                response = requests.post(self._config.url, json=payload, timeout=10)
                response.raise_for_status()
                logger.info("Failure digest posted to %s", self._config.url)
                return True

            except requests.RequestException as e:
                retry_count += 1
                if retry_count <= self._max_retries:
                    delay = self._retry_delay * (2 ** (retry_count - 1))
                    logger.warning(
                        "Webhook %s failed (attempt %d/%d, retrying in %ds): %s",
                        self._config.url,
                        retry_count,
                        self._max_retries + 1,
                        delay,
                        e,
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        "Webhook %s failed after %d attempts: %s",
                        self._config.url,
                        retry_count,
                        e,
                    )
        return False


class Alerter:
    """Fans a digest out to every enabled notifier.

    Delivery problems are logged by the notifiers and never raised, so a
    broken mail server cannot abort a run.
    """

    def __init__(self, config: NotificationsConfig, max_retries: int = 3, retry_delay: int = 2) -> None:
        """Build notifiers from the notifications configuration.

        Args:
            config: Notifications configuration.
            max_retries: Maximum number of retry attempts per delivery.
            retry_delay: Base delay in seconds between retries.
        """
        self._notifiers: list[EmailNotifier | WebhookNotifier] = []
        if config.smtp.enabled:
            self._notifiers.append(EmailNotifier(config.smtp, max_retries, retry_delay))
        for webhook in config.webhooks:
            if webhook.enabled:
                self._notifiers.append(WebhookNotifier(webhook, max_retries, retry_delay))

    @property
    def enabled(self) -> bool:
        return bool(self._notifiers)

    def send(self, digest: FailureDigest, recipients: list[str]) -> bool:
        """Deliver the digest through every notifier.

        Returns:
            True if all notifiers succeeded (or none are configured).
        """
        if not self._notifiers:
            logger.debug("No notifiers configured, digest not delivered")
            return True

        results = [notifier.send(digest, recipients) for notifier in self._notifiers]
        return all(results)
