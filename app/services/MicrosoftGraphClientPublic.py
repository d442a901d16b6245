"""Microsoft Graph client for outbound assessment and alert emails."""

import logging
from datetime import timedelta
from typing import Optional, Union

import httpx

from app.core.config import settings
from app.core.exceptions import BackendError
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


class MicrosoftGraphClientPublic:
    """
    Client for sending emails to external recipients.

    This client uses a single authorized sender mailbox. Delivery is
    fire-and-forget for callers: ``send_email`` reports success as a bool
    and never raises.
    """

    BASE_URL = "https://graph.microsoft.com/v1.0"

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        default_sender: str = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.default_sender = default_sender or settings.EMAIL_SENDER
        self._transport = transport
        self._access_token = None
        self._token_expiry = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=30.0)

    async def _get_access_token(self, force_refresh: bool = False) -> str:
        """Get access token for application (not user-delegated)."""
        if not force_refresh and self._access_token and self._token_expiry:
            if utcnow() < self._token_expiry - timedelta(minutes=5):
                return self._access_token

        token_url = f"https://login.microsoftonline.com/{self.tenant_id}/oauth2/v2.0/token"

        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": "https://graph.microsoft.com/.default",
            "grant_type": "client_credentials"
        }

        async with self._client() as client:
            response = await client.post(token_url, data=data)

            if response.status_code != 200:
                raise BackendError("mail_access_token", response.text)

            token_data = response.json()
            self._access_token = token_data["access_token"]
            expires_in = token_data.get("expires_in", 3600)
            self._token_expiry = utcnow() + timedelta(seconds=expires_in)

            logger.info(f"✅ [Mail] New access token obtained, expires in {expires_in}s")
            return self._access_token

    async def clear_token_cache(self):
        """Force clear the token cache to get fresh permissions."""
        self._access_token = None
        self._token_expiry = None
        logger.info("🔄 [Mail] Token cache cleared")

    async def send_email(
        self,
        to: Union[str, list],
        subject: str,
        html: str,
        retry_with_refresh: bool = True
    ) -> bool:
        """
        Send an HTML email.

        Args:
            to: Recipient address or list of addresses
            subject: Email subject
            html: HTML body content
            retry_with_refresh: If True, retry once with fresh token on 403

        Returns:
            Whether Graph accepted the message
        """
        to_emails = [to] if isinstance(to, str) else list(to)

        message = {
            "message": {
                "subject": subject,
                "body": {
                    "contentType": "HTML",
                    "content": html
                },
                "toRecipients": [
                    {"emailAddress": {"address": email}}
                    for email in to_emails
                ]
            },
            "saveToSentItems": "true"
        }

        url = f"{self.BASE_URL}/users/{self.default_sender}/sendMail"

        try:
            token = await self._get_access_token()
            headers = {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json"
            }
            async with self._client() as client:
                response = await client.post(url, headers=headers, json=message)
        except (httpx.HTTPError, BackendError) as e:
            logger.error(f"❌ [Mail] Failed to send email to {', '.join(to_emails)}: {e}")
            return False

        if response.status_code == 403 and retry_with_refresh:
            logger.warning("⚠️ [Mail] Email send got 403, refreshing token and retrying...")
            await self.clear_token_cache()
            return await self.send_email(to_emails, subject, html, retry_with_refresh=False)

        if response.status_code not in [200, 202]:
            if response.status_code == 403:
                logger.error(
                    "❌ [Mail] Access denied when sending email. Please ensure the app has "
                    f"'Mail.Send' permission and the mailbox '{self.default_sender}' exists."
                )
            else:
                logger.error(f"❌ [Mail] Failed to send email: {response.status_code} - {response.text}")
            return False

        logger.info(f"✅ [Mail] Email sent to {', '.join(to_emails)}: {subject}")
        return True


class UnconfiguredMailer:
    """Used when Graph credentials are missing; logs and reports failure."""

    async def send_email(self, to: Union[str, list], subject: str, html: str, **kwargs) -> bool:
        logger.warning(f"⚠️ [Mail] Mail transport not configured, skipping email: {subject}")
        return False


_mailer = None


def get_mailer():
    """FastAPI dependency returning the process-wide mail transport."""
    global _mailer
    if _mailer is None:
        if settings.MAIL_CONFIGURED:
            _mailer = MicrosoftGraphClientPublic(
                tenant_id=settings.MICROSOFT_TENANT_ID,
                client_id=settings.MICROSOFT_CLIENT_ID,
                client_secret=settings.MICROSOFT_CLIENT_SECRET,
            )
        else:
            _mailer = UnconfiguredMailer()
    return _mailer
