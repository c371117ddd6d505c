"""
Okta login: primary authentication, MFA and SAML assertion retrieval.

Produces the base64 SAML assertion for the AWS app.  Every HTTP request is
bounded by REQUEST_TIMEOUT and push approval by PUSH_POLL_TIMEOUT.
"""

import logging
import time

import requests
from bs4 import BeautifulSoup

from .errors import LoginFailure, LoginTimeout

log = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30     # seconds per HTTP request
PUSH_POLL_INTERVAL = 3   # seconds between push-approval polls
PUSH_POLL_TIMEOUT = 180  # seconds before giving up on a push

JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}

FACTOR_LABELS = {
    "token:software:totp": "TOTP Authenticator",
    "push": "Okta Verify Push",
    "sms": "SMS",
    "call": "Voice Call",
    "token:hotp": "HOTP Token",
    "email": "Email",
}

# ---------------------------------------------------------------------------
# Okta authentication
# ---------------------------------------------------------------------------


def normalize_okta_url(okta_url):
    """Return *okta_url* with a scheme and without a trailing slash."""
    okta_url = okta_url.strip()
    if not okta_url.startswith("http"):
        okta_url = f"https://{okta_url}"
    return okta_url.rstrip("/")


def _post_json(url, payload):
    try:
        response = requests.post(url, json=payload, headers=JSON_HEADERS, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
    except requests.HTTPError as exc:
        raise LoginFailure(_describe_http_error(exc)) from exc
    except requests.Timeout as exc:
        raise LoginTimeout(f"Okta did not answer within {REQUEST_TIMEOUT}s") from exc
    except requests.RequestException as exc:
        raise LoginFailure(f"Could not reach Okta: {exc}") from exc
    return response.json()


def _describe_http_error(exc):
    status_code = exc.response.status_code if exc.response is not None else None
    if status_code == 401:
        return "Authentication failed: invalid username or password."
    if status_code == 429:
        return "Authentication failed: too many requests, please wait and retry."
    return f"Authentication failed: HTTP {status_code}."


def okta_authn(okta_url, username, password):
    """Perform primary Okta username/password authentication.

    Returns the parsed JSON response from the /api/v1/authn endpoint.
    """
    log.debug("POST %s/api/v1/authn as %s", okta_url, username)
    return _post_json(f"{okta_url}/api/v1/authn", {"username": username, "password": password})


def okta_mfa_verify(okta_url, factor, state_token, passcode=None):
    """Send an MFA verification request to Okta.

    For push factors call without *passcode* to trigger the challenge, then
    poll this endpoint again (without passcode) to check approval status.
    """
    payload = {"stateToken": state_token}
    if passcode:
        payload["passCode"] = passcode
    return _post_json(f"{okta_url}/api/v1/authn/factors/{factor['id']}/verify", payload)


def choose_factor(factors, prompt=input):
    """Return a single factor from *factors*, prompting the user if necessary."""
    if len(factors) == 1:
        return factors[0]

    print("\nAvailable MFA factors:")
    for i, factor in enumerate(factors):
        factor_type = factor.get("factorType", "unknown")
        provider = factor.get("provider", "")
        label = FACTOR_LABELS.get(factor_type, factor_type)
        if provider:
            label = f"{label} ({provider})"
        print(f"  [{i + 1}] {label}")

    while True:
        try:
            choice = int(prompt("\nSelect MFA factor: ").strip()) - 1
            if 0 <= choice < len(factors):
                return factors[choice]
        except ValueError:
            pass
        print("Invalid selection, please try again.")


def handle_mfa(okta_url, authn_result, prompt=input):
    """Handle the MFA challenge and return the authn result after success."""
    state_token = authn_result["stateToken"]
    factors = authn_result["_embedded"]["factors"]
    factor = choose_factor(factors, prompt)
    factor_type = factor.get("factorType", "")

    if factor_type == "push":
        return handle_push(okta_url, factor, state_token)

    if factor_type in ("token:software:totp", "token:hotp"):
        passcode = prompt("Enter TOTP code: ").strip()
        return okta_mfa_verify(okta_url, factor, state_token, passcode)

    if factor_type in ("sms", "email"):
        print(f"Sending {FACTOR_LABELS[factor_type]} code...")
        okta_mfa_verify(okta_url, factor, state_token)
        passcode = prompt(f"Enter {FACTOR_LABELS[factor_type]} code: ").strip()
        return okta_mfa_verify(okta_url, factor, state_token, passcode)

    passcode = prompt(f"Enter code for {factor_type}: ").strip()
    return okta_mfa_verify(okta_url, factor, state_token, passcode)


def handle_push(okta_url, factor, state_token, timeout=PUSH_POLL_TIMEOUT, sleep=time.sleep):
    """Poll Okta Verify push until approved, rejected, or timeout."""
    print("Sending push notification to Okta Verify... please approve it.", flush=True)
    result = okta_mfa_verify(okta_url, factor, state_token)
    deadline = time.monotonic() + timeout

    while result.get("status") == "MFA_CHALLENGE":
        factor_result = result.get("factorResult", "")
        if factor_result == "WAITING":
            if time.monotonic() > deadline:
                raise LoginTimeout(f"Push notification not approved within {timeout}s.")
            print(".", end="", flush=True)
            sleep(PUSH_POLL_INTERVAL)
            result = okta_mfa_verify(okta_url, factor, state_token)
        elif factor_result == "REJECTED":
            raise LoginFailure("Push notification was rejected.")
        elif factor_result == "TIMEOUT":
            raise LoginTimeout("Push notification timed out.")
        else:
            break  # unknown status, authenticate() checks the final state

    print()
    return result


def authenticate(okta_url, username, password, prompt=input):
    """Log in to Okta, completing MFA if required, and return the session token."""
    authn_result = okta_authn(okta_url, username, password)
    status = authn_result.get("status")

    if status == "LOCKED_OUT":
        raise LoginFailure("Your account is locked out. Please contact your administrator.")
    if status == "PASSWORD_EXPIRED":
        raise LoginFailure("Your password has expired. Please reset it in Okta and try again.")
    if status == "MFA_ENROLL":
        raise LoginFailure("MFA enrollment is required. Please enroll a factor in Okta first.")

    if status in ("MFA_REQUIRED", "MFA_CHALLENGE"):
        print("MFA verification required.")
        authn_result = handle_mfa(okta_url, authn_result, prompt)
        status = authn_result.get("status")

    if status != "SUCCESS":
        raise LoginFailure(f"Authentication failed with unexpected status: {status}")

    session_token = authn_result.get("sessionToken")
    if not session_token:
        raise LoginFailure("Okta did not return a session token. Check your credentials and try again.")
    return session_token


# ---------------------------------------------------------------------------
# SAML assertion retrieval
# ---------------------------------------------------------------------------


def get_saml_assertion(okta_url, app_url, session_token):
    """Retrieve the base64-encoded SAML assertion from the Okta AWS app.

    Two strategies are tried:
    1. Exchange the session token for a cookie via /login/sessionCookieRedirect,
       then follow redirects to the app.
    2. Append the session token directly to the app URL as a query parameter.

    Returns (saml_assertion, action_url, http_session).
    Raises LoginFailure when no SAMLResponse form field is found.
    """
    session = requests.Session()

    log.debug("Strategy 1: GET %s/login/sessionCookieRedirect (redirectUrl=%s)", okta_url, app_url)
    resp = _get(
        session,
        f"{okta_url}/login/sessionCookieRedirect",
        params={"checkAccountSetupComplete": "true", "token": session_token, "redirectUrl": app_url},
    )
    saml_assertion, action_url = extract_saml_form(resp.text)

    if not saml_assertion:
        log.debug("Strategy 2: GET %s?sessionToken=<redacted>", app_url)
        resp = _get(session, app_url, params={"sessionToken": session_token})
        saml_assertion, action_url = extract_saml_form(resp.text)

    if not saml_assertion:
        raise LoginFailure(
            "Could not find SAMLResponse in Okta response. "
            "Verify that 'app_url' is the embed link for the AWS SAML app."
        )

    log.debug("SAML form action URL: %s", action_url)
    return saml_assertion, action_url, session


def _get(session, url, params):
    try:
        resp = session.get(url, params=params, allow_redirects=True, timeout=REQUEST_TIMEOUT)
        log.debug("Final URL %s (HTTP %s) after %d redirects",
                  resp.url, resp.status_code, len(resp.history))
        resp.raise_for_status()
    except requests.Timeout as exc:
        raise LoginTimeout(f"Okta did not answer within {REQUEST_TIMEOUT}s") from exc
    except requests.RequestException as exc:
        raise LoginFailure(f"Failed to retrieve SAML assertion: {exc}") from exc
    return resp


def extract_saml_form(html):
    """Return (saml_assertion, action_url) from an HTML form, or (None, None)."""
    soup = BeautifulSoup(html, "lxml")
    tag = soup.find("input", {"name": "SAMLResponse"})
    if not tag:
        return None, None
    form = tag.find_parent("form")
    action_url = form["action"] if form and form.get("action") else None
    return tag["value"], action_url
