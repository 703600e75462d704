import logging, smtplib
from email.mime.text import MIMEText

import requests

from storefront import config

# ---------- Logging & notify ----------
log = logging.getLogger("shop")


def setup_logging(log_file=None):
    if log.handlers:
        return log
    log.setLevel(logging.INFO)
    fh = logging.FileHandler(log_file or config.LOG_FILE)
    fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    log.addHandler(fh); log.addHandler(ch)
    return log


def notify(msg: str):
    try:
        if config.SLACK_WEBHOOK_URL:
            requests.post(config.SLACK_WEBHOOK_URL, json={"text": msg}, timeout=5)
    except Exception as e:
        log.warning(f"Slack notify failed: {e}")
    try:
        if config.SMTP_HOST and config.ALERT_EMAIL_TO:
            m = MIMEText(msg)
            m["Subject"] = f"[{config.SITE_NAME}] Notification"
            m["From"] = config.SMTP_USER or "noreply@localhost"
            m["To"] = config.ALERT_EMAIL_TO
            with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=5) as s:
                s.starttls()
                if config.SMTP_USER and config.SMTP_PASS:
                    s.login(config.SMTP_USER, config.SMTP_PASS)
                s.send_message(m)
    except Exception as e:
        log.warning(f"Email notify failed: {e}")
