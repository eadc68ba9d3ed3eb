"""
Usage notification emails via SendGrid.

Falls back to console logging when SendGrid is not configured, the same way
magic link emails are handled in development.
"""
import os

METRIC_LABELS = {
    'links': 'links',
    'clicks': 'clicks this month',
    'users': 'team members',
}


def build_usage_email(workspace_name, workspace_slug, admin_name, metric,
                      percentage, current_usage, limit, plan_name):
    """Return (subject, html, text, upgrade_url) for a usage warning."""
    label = METRIC_LABELS.get(metric, metric)
    reached = percentage >= 100
    app_url = os.environ.get('APP_URL', 'http://localhost:5000').rstrip('/')
    upgrade_url = f'{app_url}/{workspace_slug}/settings/billing?upgrade=true&reason={metric}_limit'

    if reached:
        subject = f'[Action Required] {workspace_name} has reached its {metric} limit'
        summary = f'{workspace_name} has reached its {label} limit on the {plan_name} plan.'
        advice = f'Please upgrade your plan to continue adding {label}.'
    else:
        subject = f'[Warning] {workspace_name} is at {round(percentage)}% of its {metric} limit'
        summary = (f'{workspace_name} is at {round(percentage)}% of its {label} limit '
                   f'on the {plan_name} plan.')
        advice = 'Consider upgrading soon to avoid any interruptions.'

    usage_line = f'{current_usage:,} / {limit:,} {label}'

    html = f'''
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h2 style="color: #6366f1;">Usage Limit {'Reached' if reached else 'Warning'}</h2>
            <p>Hi {admin_name},</p>
            <p>{summary}</p>
            <div style="background: #f7f9fc; padding: 20px; border-radius: 8px; margin: 20px 0;">
                <p style="font-size: 20px; margin: 0;"><strong>{usage_line}</strong></p>
                <p style="color: #666; margin: 8px 0 0;">{round(percentage)}% used</p>
            </div>
            <p>{advice}</p>
            <div style="text-align: center; margin: 30px 0;">
                <a href="{upgrade_url}"
                   style="background: #6366f1; color: white; padding: 12px 24px;
                          text-decoration: none; border-radius: 8px; display: inline-block;">
                    Upgrade Plan
                </a>
            </div>
            <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
            <p style="color: #999; font-size: 12px;">
                This is an automated usage notification. Please do not reply to this email.
            </p>
        </div>
    '''

    text = (
        f'Hi {admin_name},\n\n'
        f'{summary}\n\n'
        f'Current usage: {usage_line}\n\n'
        f'{advice}\n\n'
        f'Upgrade your plan: {upgrade_url}\n'
    )
    return subject, html, text, upgrade_url


def send_usage_warning_email(workspace_name, workspace_slug, admin_email, admin_name,
                             metric, percentage, current_usage, limit, plan_name):
    """
    Send a usage warning email to the workspace owner via SendGrid
    Falls back to console logging if SendGrid is not configured
    """
    subject, html, text, upgrade_url = build_usage_email(
        workspace_name, workspace_slug, admin_name, metric,
        percentage, current_usage, limit, plan_name,
    )

    sendgrid_api_key = os.environ.get('SENDGRID_API_KEY')

    if sendgrid_api_key:
        try:
            from sendgrid import SendGridAPIClient
            from sendgrid.helpers.mail import Mail

            from_email = os.environ.get('SENDGRID_FROM_EMAIL', 'notifications@linkdeck.app')

            message = Mail(
                from_email=from_email,
                to_emails=admin_email,
                subject=subject,
                html_content=html,
                plain_text_content=text,
            )

            sg = SendGridAPIClient(sendgrid_api_key)
            response = sg.send(message)

            print(f"[usage] Usage email sent to {admin_email} for {workspace_name} (Status: {response.status_code})")
            return True

        except Exception as e:
            print(f"[usage] SendGrid error: {e}")
            print(f"[usage] Falling back to console logging for {admin_email}")

    # Development mode: Print to console
    print("=" * 60)
    print("USAGE WARNING EMAIL (Development Mode)")
    print("=" * 60)
    print(f"To: {admin_email}")
    print(f"Subject: {subject}")
    print(text)
    print("=" * 60)
    print("Add SENDGRID_API_KEY to environment to send real emails")
    print("=" * 60)

    return True
