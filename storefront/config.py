import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///storefront.db")
SECRET = os.getenv("FLASK_SECRET_KEY", "dev-key")

SITE_NAME = os.getenv("SITE_NAME", "My Shop")
CURRENCY  = os.getenv("CURRENCY", "USD")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000")
PAGE_SIZE = int(os.getenv("PAGE_SIZE", "20"))

# Pricing
TAX_RATE = float(os.getenv("TAX_RATE", "0.08"))
FREE_SHIPPING_THRESHOLD_CENTS = int(os.getenv("FREE_SHIPPING_THRESHOLD_CENTS", "10000"))
STANDARD_SHIPPING_CENTS = int(os.getenv("STANDARD_SHIPPING_CENTS", "999"))
EXPRESS_SHIPPING_CENTS = int(os.getenv("EXPRESS_SHIPPING_CENTS", "1999"))
RETURN_WINDOW_DAYS = int(os.getenv("RETURN_WINDOW_DAYS", "30"))

# Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

# AI product generator
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
AI_MODEL = os.getenv("AI_MODEL", "claude-haiku-4-5-20251001")
AI_MAX_TOKENS = int(os.getenv("AI_MAX_TOKENS", "2048"))

# Notifications
SLACK_WEBHOOK_URL = os.getenv("SLACK_WEBHOOK_URL")
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
ALERT_EMAIL_TO = os.getenv("ALERT_EMAIL_TO")
LOG_FILE = os.getenv("LOG_FILE", "app.log")

# Product images referenced by bare file name
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "media")
