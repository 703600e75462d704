import os

import stripe
from flask import Flask, flash, jsonify, redirect, render_template, request, send_from_directory, url_for
from sqlalchemy import text

from storefront import __version__, config
from storefront.api import admin_api, store_api
from storefront.auth import is_admin, login_manager
from storefront.db import init_db, main_session
from storefront.errors import ApiError
from storefront.helpers import format_money, is_safe_url
from storefront.notify import log, notify, setup_logging
from storefront.services.orders import handle_checkout_completed
from storefront.views.admin import RESOURCES, bp as admin_bp
from storefront.views.shop import bp as shop_bp, get_cart

setup_logging()
init_db()

app = Flask(__name__, static_folder="static", template_folder="templates")
app.secret_key = config.SECRET
login_manager.init_app(app)

app.register_blueprint(shop_bp)
app.register_blueprint(admin_bp)
app.register_blueprint(store_api)
app.register_blueprint(admin_api)


@app.context_processor
def inject_globals():
    cart = get_cart()
    qty = sum(cart.values()) if isinstance(cart, dict) else 0
    return {"SITE_NAME": config.SITE_NAME, "cart_qty": qty, "format_money": format_money,
            "is_staff": is_admin(), "admin_resources": RESOURCES}

# --------------------------- STRIPE WEBHOOK ---------------------------
@app.post("/webhooks/stripe")
def stripe_webhook():
    payload = request.get_data(as_text=True)
    sig = request.headers.get("Stripe-Signature", "")
    try:
        event = stripe.Webhook.construct_event(payload, sig, config.STRIPE_WEBHOOK_SECRET)
    except Exception as e:
        log.warning(f"Stripe webhook signature failure: {e}")
        return "bad sig", 400
    try:
        if event["type"] == "checkout.session.completed":
            with main_session() as db:
                handle_checkout_completed(db, event["data"]["object"])
                db.commit()
        return "ok", 200
    except Exception as e:
        log.exception("Stripe webhook error")
        notify(f"Stripe webhook error: {e}")
        return "error", 500

# --------------------------- MISC ---------------------------
@app.get("/health")
def health():
    try:
        with main_session() as db:
            db.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        log.error(f"Health check database failure: {e}")
        database = "error"
    status = 200 if database == "ok" else 503
    return jsonify({"status": "ok" if status == 200 else "degraded", "database": database,
                    "version": __version__}), status

@app.get("/media/<path:filename>")
def media(filename):
    return send_from_directory(os.path.abspath(config.UPLOAD_DIR), filename, conditional=True)

# --------------------------- ERRORS ---------------------------
@app.errorhandler(ApiError)
def page_api_error(e):
    # raised outside a try in page views, e.g. Forbidden from a role check
    if request.path.startswith("/api/"):
        return jsonify({"success": False, "error": e.message}), e.status
    flash(e.message, "danger")
    if e.status == 403:
        return render_template("403.html"), 403
    if e.status == 404:
        return render_template("404.html"), 404
    back = request.referrer
    return redirect(back if back and is_safe_url(back) else url_for("shop.index"))

@app.errorhandler(404)
def not_found(e):
    if request.path.startswith("/api/"):
        return jsonify({"success": False, "error": "Not found"}), 404
    return render_template("404.html"), 404


if __name__ == "__main__":
    # Dev server
    app.run(host="0.0.0.0", port=3000, debug=True)
