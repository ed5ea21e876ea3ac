import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
import html
import logging

from config import Settings

logger = logging.getLogger(__name__)


class EmailService:
    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        smtp_user: Optional[str],
        smtp_password: Optional[str],
        sender: Optional[str] = None,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.sender = sender or smtp_user

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailService":
        return cls(
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_user,
            settings.smtp_password,
            settings.email_from,
        )

    def send_email(self, to_email: str, subject: str, html_body: str) -> None:
        if not self.smtp_user or not self.smtp_password:
            logger.warning(f"[EMAIL STUB] To: {to_email} | Subject: {subject}")
            logger.debug(f"[EMAIL STUB] Body: {html_body[:200]}...")
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to_email
        msg.attach(MIMEText(html_body, "html"))

        if self.smtp_port == 465:
            with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port) as server:
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.sender, to_email, msg.as_string())
        else:
            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.sender, to_email, msg.as_string())
        logger.info(f"Sent '{subject}' to {to_email}")


def build_quiz_result_email(score: float, improvement_tip: Optional[str], app_url: str) -> tuple[str, str]:
    tip_block = (
        f"<p><strong>Tip for next time:</strong> {html.escape(improvement_tip)}</p>"
        if improvement_tip
        else "<p>Perfect score! Keep it up.</p>"
    )
    subject = f"Quiz Results: {score:.1f}%"
    body = f"""
    <h1>Your Quiz Results are In!</h1>
    <p>You just completed a technical quiz. Here is how you did:</p>
    <h2>Score: <strong>{score:.1f}%</strong></h2>
    {tip_block}
    <br />
    <a href="{app_url}/interview">View Your Progress</a>
    """
    return subject, body


def build_interview_feedback_email(
    assessment_id: int, total_score: float, final_assessment: str, app_url: str
) -> tuple[str, str]:
    subject = f"Interview Feedback: {total_score:g}/10"
    body = f"""
    <h1>Your Interview Feedback is Ready!</h1>
    <p>Great job completing your mock interview. Here is your summary:</p>
    <h2>Score: <strong>{total_score:g}/10</strong></h2>
    <h3>Overall Feedback:</h3>
    <p>{html.escape(final_assessment or "")}</p>
    <br />
    <a href="{app_url}/interview/feedback/{assessment_id}">View Full Detailed Feedback</a>
    """
    return subject, body
