import ipaddress
import re

import requests
from flask import current_app

# ISO 4217 numeric codes expected by the register.do API
CURRENCY_CODES = {"PKR": 586, "USD": 840, "EUR": 978, "GBP": 826, "AED": 784, "SAR": 682}

# The gateway answers in JSON, XML or key=value text depending on the endpoint version
FORM_URL_PATTERNS = [
    re.compile(r'formUrl["\s:=]+([^"\'\s<>]+)', re.I),
    re.compile(r'<formUrl>([^<]+)</formUrl>', re.I),
    re.compile(r'formUrl=([^&\s]+)', re.I),
    re.compile(r'url["\s:=]+([^"\'\s<>]+)', re.I),
]

GEO_FIELDS = "status,message,country,countryCode,city,region,timezone,lat,lon"


class GatewayError(Exception):
    pass


def gateway_configured():
    cfg = current_app.config
    return bool(cfg.get("MEEZAN_USERNAME") and cfg.get("MEEZAN_PASSWORD"))


def extract_form_url(payload):
    if isinstance(payload, dict):
        return payload.get("formUrl") or payload.get("url")
    if isinstance(payload, str):
        for pattern in FORM_URL_PATTERNS:
            match = pattern.search(payload)
            if match and match.group(1):
                return match.group(1)
    return None


def register_transaction(reference, amount, currency):
    """Register an order with the bank's hosted payment page.

    Returns ``(form_url, payload)``. Raises GatewayError when the gateway is not
    configured or no redirect URL can be found, and lets requests exceptions
    propagate for transport failures. There is no retry.
    """
    cfg = current_app.config
    if not gateway_configured():
        raise GatewayError("Payment gateway credentials are not configured")

    params = {
        "userName": cfg["MEEZAN_USERNAME"],
        "password": cfg["MEEZAN_PASSWORD"],
        # minor units
        "amount": str(int(round(amount * 100))),
        "currency": str(CURRENCY_CODES[currency]),
        "returnUrl": cfg["MEEZAN_RETURN_URL"],
        "failUrl": cfg["MEEZAN_CANCEL_URL"],
        "orderNumber": reference,
    }
    current_app.logger.info(f"Registering order {reference} with payment gateway: amount={params['amount']} currency={params['currency']}")
    response = requests.post(cfg["MEEZAN_REGISTER_URL"], data=params, timeout=cfg["MEEZAN_TIMEOUT"])
    response.raise_for_status()
    try:
        payload = response.json()
    except ValueError:
        payload = response.text
    current_app.logger.info(f"Payment gateway response for {reference}: {payload}")

    form_url = extract_form_url(payload)
    if not form_url:
        current_app.logger.error(f"Failed to parse formUrl from payment gateway response: {payload}")
        raise GatewayError("Failed to get payment URL from Meezan Bank")
    return form_url, payload


def client_ip(req):
    forwarded = req.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return req.remote_addr


def _is_local(ip):
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return True
    return addr.is_loopback or addr.is_private


def lookup_location(ip):
    """Best-effort IP geolocation. Never raises; returns {} when the location is unknown."""
    if not ip or _is_local(ip):
        return {}
    url = current_app.config["GEO_API_URL"].format(ip=ip)
    try:
        resp = requests.get(url, params={"fields": GEO_FIELDS}, timeout=current_app.config["GEO_TIMEOUT"])
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        current_app.logger.info(f"Location detection failed: {e}")
        return {}
    if not isinstance(data, dict) or data.get("status") != "success":
        current_app.logger.info(f"Location detection failed for {ip}: {data}")
        return {}
    return {
        "ip": ip,
        "country": data.get("country"),
        "countryCode": data.get("countryCode"),
        "city": data.get("city"),
        "region": data.get("region"),
        "timezone": data.get("timezone"),
        "latitude": data.get("lat"),
        "longitude": data.get("lon"),
    }
