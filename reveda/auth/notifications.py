"""
OTP delivery by email (SMTP) and SMS (Twilio).

Both senders report failure by returning False and never raise, so the
authentication service decides per flow what a failed delivery means.
Every send is bounded by ``timeout`` seconds.
"""
import asyncio
import logging
import smtplib
import socket
import ssl
import time
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient

logger = logging.getLogger(__name__)

MAX_RETRIES = 2
RETRY_DELAY = 1  # seconds between SMTP attempts

def render_otp_email(code: str, display_name: str, expire_minutes: int) -> str:
    """HTML body of the verification email."""
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #4CAF50;">Welcome to ReVeda!</h2>
        <p>Hi {display_name},</p>
        <p>Please use the following OTP to verify your account:</p>
        <div style="background-color: #f5f5f5; padding: 20px; text-align: center; margin: 20px 0;">
            <h1 style="color: #333; font-size: 32px; margin: 0; letter-spacing: 5px;">{code}</h1>
        </div>
        <p>This OTP will expire in {expire_minutes} minutes.</p>
        <p>If you didn't request this code, please ignore this email.</p>
        <br>
        <p>Best regards,<br>ReVeda Team</p>
        <p style="font-size: 12px; color: #777;">&copy; {datetime.now().year} ReVeda</p>
    </div>
    """

class NotificationDispatcher:
    """
    Sends one-time passcodes to users.

    When a channel has no credentials configured and ``dev_mode`` is on, the
    code is written to the log instead of being sent. Outside dev mode an
    unconfigured channel is a delivery failure.

    Args:
        mail_server / mail_port / mail_username / mail_password / mail_from: SMTP settings
        mail_use_ssl: Implicit SSL (port 465) instead of STARTTLS
        twilio_account_sid / twilio_auth_token / twilio_phone_number: Twilio settings
        sms_country_code: Prefix for numbers given without one
        timeout: Upper bound in seconds on a single send
        dev_mode: Log codes for unconfigured channels
        expire_minutes: Shown in the email body
    """

    def __init__(
        self,
        mail_server: Optional[str] = None,
        mail_port: int = 465,
        mail_username: Optional[str] = None,
        mail_password: Optional[str] = None,
        mail_from: Optional[str] = None,
        mail_use_ssl: bool = True,
        twilio_account_sid: Optional[str] = None,
        twilio_auth_token: Optional[str] = None,
        twilio_phone_number: Optional[str] = None,
        sms_country_code: str = "+91",
        timeout: float = 10.0,
        dev_mode: bool = False,
        expire_minutes: int = 10,
    ):
        self.mail_server = mail_server
        self.mail_port = mail_port
        self.mail_username = mail_username
        # App passwords are often pasted with spaces
        self.mail_password = mail_password.replace(" ", "") if mail_password else mail_password
        self.mail_from = mail_from or mail_username
        self.mail_use_ssl = mail_use_ssl
        self.twilio_account_sid = twilio_account_sid
        self.twilio_auth_token = twilio_auth_token
        self.twilio_phone_number = twilio_phone_number
        self.sms_country_code = sms_country_code
        self.timeout = timeout
        self.dev_mode = dev_mode
        self.expire_minutes = expire_minutes
        self._twilio_client = None

    @property
    def email_configured(self) -> bool:
        return all([self.mail_server, self.mail_username, self.mail_password, self.mail_from])

    @property
    def sms_configured(self) -> bool:
        return all([self.twilio_account_sid, self.twilio_auth_token, self.twilio_phone_number])

    async def _run_bounded(self, func, *args) -> bool:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"{func.__name__} timed out after {self.timeout}s")
            return False
        except Exception as e:
            logger.error(f"{func.__name__} failed: {e!r}")
            return False

    async def send_otp_email(self, address: str, code: str, display_name: str) -> bool:
        """
        Email a passcode.

        Args:
            address: Recipient email address
            code: Six digit passcode
            display_name: Name used in the greeting

        Returns:
            bool: True if the message was handed to the SMTP server
        """
        if not self.email_configured:
            if self.dev_mode:
                logger.info(f"DEV MODE - OTP for {address}: {code} (email to {display_name} not sent)")
                return True
            logger.error("Email configuration is incomplete, cannot send OTP email")
            return False
        return await self._run_bounded(self._send_email_sync, address, code, display_name)

    async def send_otp_sms(self, number: str, code: str) -> bool:
        """
        Text a passcode.

        Args:
            number: Recipient phone number
            code: Six digit passcode

        Returns:
            bool: True if Twilio accepted the message
        """
        if not self.sms_configured:
            if self.dev_mode:
                logger.info(f"DEV MODE - SMS OTP for {number}: {code}")
                return True
            logger.error("SMS configuration is incomplete, cannot send OTP SMS")
            return False
        return await self._run_bounded(self._send_sms_sync, number, code)

    def _send_email_sync(self, address: str, code: str, display_name: str) -> bool:
        msg = MIMEMultipart()
        msg["From"] = self.mail_from
        msg["To"] = address
        msg["Subject"] = "ReVeda - Verify Your Account"
        msg.attach(MIMEText(render_otp_email(code, display_name, self.expire_minutes), "html"))

        context = ssl.create_default_context()
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                logger.info(f"Email send attempt {attempt}/{MAX_RETRIES} to {address}")
                if self.mail_use_ssl:
                    server = smtplib.SMTP_SSL(self.mail_server, self.mail_port, timeout=self.timeout, context=context)
                else:
                    server = smtplib.SMTP(self.mail_server, self.mail_port, timeout=self.timeout)
                with server:
                    if not self.mail_use_ssl:
                        server.ehlo()
                        server.starttls(context=context)
                        server.ehlo()
                    server.login(self.mail_username, self.mail_password)
                    server.send_message(msg)
                logger.info(f"OTP email sent successfully to {address}")
                return True

            except (smtplib.SMTPAuthenticationError, smtplib.SMTPRecipientsRefused) as e:
                # Retrying will not help
                logger.error(f"SMTP rejected OTP email to {address}: {e}")
                return False

            except (smtplib.SMTPException, socket.timeout, OSError) as e:
                logger.warning(f"SMTP error on attempt {attempt}: {e}")
                if attempt < MAX_RETRIES:
                    time.sleep(RETRY_DELAY)

        logger.error(f"Failed to send OTP email to {address} after {MAX_RETRIES} attempts")
        return False

    def _twilio(self) -> TwilioClient:
        if self._twilio_client is None:
            self._twilio_client = TwilioClient(self.twilio_account_sid, self.twilio_auth_token)
        return self._twilio_client

    def _send_sms_sync(self, number: str, code: str) -> bool:
        to = number if number.startswith("+") else f"{self.sms_country_code}{number}"
        try:
            message = self._twilio().messages.create(
                body=f"Your ReVeda verification code is {code}. It expires in {self.expire_minutes} minutes.",
                from_=self.twilio_phone_number,
                to=to,
            )
        except TwilioException as e:
            logger.error(f"Twilio rejected OTP SMS to {number}: {e}")
            return False
        logger.info(f"OTP SMS queued for {number} (sid {message.sid})")
        return True

def build_notification_dispatcher(settings) -> NotificationDispatcher:
    return NotificationDispatcher(
        mail_server=settings.mail_server,
        mail_port=settings.mail_port,
        mail_username=settings.mail_username,
        mail_password=settings.mail_password,
        mail_from=settings.mail_from,
        mail_use_ssl=settings.mail_use_ssl,
        twilio_account_sid=settings.twilio_account_sid,
        twilio_auth_token=settings.twilio_auth_token,
        twilio_phone_number=settings.twilio_phone_number,
        sms_country_code=settings.sms_country_code,
        timeout=settings.notification_timeout_seconds,
        dev_mode=not settings.is_production,
        expire_minutes=settings.otp_expire_minutes,
    )
