"""Email templates.

Each ``render_*`` function returns ``(html, plain_text)``. Values are
HTML-escaped before being placed in the markup.
"""

from datetime import UTC, datetime
from html import escape


BRAND_NAME = "LearningHub"

BASE_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title} - {brand}</title>
</head>
<body style="margin: 0; padding: 0; background-color: #F5F7FA; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="background-color: #F5F7FA;">
    <tr>
      <td align="center" style="padding: 40px 20px;">
        <table role="presentation" width="600" cellpadding="0" cellspacing="0" style="background-color: #FFFFFF; border-radius: 12px; max-width: 600px;">
          <tr>
            <td style="padding: 28px 40px; text-align: center; border-bottom: 1px solid #E5E7EB;">
              <h1 style="margin: 0; font-size: 26px; font-weight: 700; color: #3B5BDB;">{brand}</h1>
            </td>
          </tr>
          <tr>
            <td style="padding: 36px 40px;">
              {content}
            </td>
          </tr>
          <tr>
            <td style="padding: 20px 40px; background-color: #F9FAFB; border-top: 1px solid #E5E7EB; border-radius: 0 0 12px 12px;">
              <p style="margin: 0; font-size: 12px; color: #8E959E; text-align: center;">
                &copy; {year} {brand}. This message was sent automatically, please do not reply.<br>
                If you did not request it, you can safely ignore it.
              </p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""

ACTION_CONTENT = """
<h2 style="margin: 0 0 16px; font-size: 22px; color: #1A1D23;">{heading}</h2>
<p style="margin: 0 0 24px; font-size: 16px; color: #4B5563; line-height: 1.6;">
  Hi <strong>{name}</strong>,<br><br>{intro}
</p>
<p style="text-align: center; margin: 28px 0;">
  <a href="{link}" style="display: inline-block; background-color: #3B5BDB; color: #FFFFFF; padding: 12px 28px; text-decoration: none; border-radius: 6px; font-weight: 600;">{button}</a>
</p>
<p style="margin: 0 0 8px; font-size: 13px; color: #6B7280;">
  Or paste this link into your browser:<br>
  <span style="word-break: break-all;">{link}</span>
</p>
<div style="background-color: #FEF3C7; border-left: 4px solid #F59E0B; padding: 10px 14px; margin: 24px 0 0;">
  <p style="margin: 0; font-size: 14px; color: #92400E;">This link expires in <strong>{expires}</strong>.</p>
</div>
"""


def _format_duration(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minutes"


def _render_action(
    title: str,
    heading: str,
    name: str,
    intro: str,
    button: str,
    link: str,
    expires_in_minutes: int,
) -> tuple[str, str]:
    expires = _format_duration(expires_in_minutes)
    content = ACTION_CONTENT.format(
        heading=escape(heading),
        name=escape(name),
        intro=escape(intro),
        button=escape(button),
        link=escape(link, quote=True),
        expires=expires,
    )
    html = BASE_TEMPLATE.format(
        title=escape(title),
        brand=BRAND_NAME,
        content=content,
        year=datetime.now(UTC).year,
    )
    plain_text = f"""
{heading} - {BRAND_NAME}

Hi {name},

{intro}

{link}

This link expires in {expires}.
If you did not request it, you can safely ignore this email.
"""
    return html, plain_text.strip()


def render_verification_email(
    name: str, link: str, expires_in_minutes: int
) -> tuple[str, str]:
    return _render_action(
        title="Verify your email",
        heading="Confirm your email address",
        name=name,
        intro="Thanks for signing up. Confirm your email address to activate your account.",
        button="Verify email",
        link=link,
        expires_in_minutes=expires_in_minutes,
    )


def render_password_reset_email(
    name: str, link: str, expires_in_minutes: int
) -> tuple[str, str]:
    return _render_action(
        title="Reset your password",
        heading="Password reset",
        name=name,
        intro="We received a request to reset the password of your account.",
        button="Choose a new password",
        link=link,
        expires_in_minutes=expires_in_minutes,
    )


def render_email_change_email(
    name: str, link: str, expires_in_minutes: int
) -> tuple[str, str]:
    return _render_action(
        title="Confirm your new email",
        heading="Confirm your new email address",
        name=name,
        intro="You asked to use this address for your account. Confirm the change below.",
        button="Confirm new email",
        link=link,
        expires_in_minutes=expires_in_minutes,
    )


CODE_CONTENT = """
<h2 style="margin: 0 0 16px; font-size: 22px; color: #1A1D23;">Your sign-in code</h2>
<p style="margin: 0 0 24px; font-size: 16px; color: #4B5563; line-height: 1.6;">
  Hi <strong>{name}</strong>,<br><br>Use this code to finish signing in:
</p>
<p style="text-align: center; margin: 28px 0; font-size: 32px; font-weight: 700; letter-spacing: 8px; color: #1A1D23;">{code}</p>
<div style="background-color: #FEF3C7; border-left: 4px solid #F59E0B; padding: 10px 14px; margin: 24px 0 0;">
  <p style="margin: 0; font-size: 14px; color: #92400E;">This code expires in <strong>{expires}</strong>. Never share it with anyone.</p>
</div>
"""


def render_login_code_email(
    name: str, code: str, expires_in_minutes: int
) -> tuple[str, str]:
    expires = _format_duration(expires_in_minutes)
    html = BASE_TEMPLATE.format(
        title="Your sign-in code",
        brand=BRAND_NAME,
        content=CODE_CONTENT.format(name=escape(name), code=escape(code), expires=expires),
        year=datetime.now(UTC).year,
    )
    plain_text = f"""
Your sign-in code - {BRAND_NAME}

Hi {name},

Use this code to finish signing in: {code}

This code expires in {expires}. Never share it with anyone.
"""
    return html, plain_text.strip()
