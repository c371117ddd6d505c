"""
saml-aws command line entry point.

Logs in through Okta (or reads a SAML assertion from a file), then either
assumes one account/role and prints or saves the credentials, or renews every
stored profile from that single assertion (``--refresh``).
"""

import argparse
import datetime
import getpass
import logging
import sys

from . import console, okta
from .assertion import decode_assertion, parse_assertion, require_bindings
from .config import DEFAULT_CONFIG_PATH, DEFAULT_REGION, DEFAULT_SECTION, Settings, load_config
from .errors import SamlAwsError
from .profiles import AWS_CREDENTIALS_PATH, ProfileStore
from .refresh import FAILURE, SKIPPED, perform_login, refresh_profiles
from .sts import StsExchanger

log = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname)s:%(name)s: %(message)s"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def configure_logging(debug=False):
    """Send saml_aws log records to stderr, at DEBUG level under --debug."""
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    logger = logging.getLogger("saml_aws")
    logger.handlers[:] = [handler]
    logger.propagate = False
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    return logger


def _format_expiry(expiration):
    if expiration is None:
        return "unknown"
    return expiration.astimezone(datetime.timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def read_assertion_file(path):
    """Read a base64 SAML assertion from *path*, or from stdin for ``-``."""
    if path == "-":
        return sys.stdin.read().strip()
    with open(path) as fh:
        return fh.read().strip()


def okta_login(settings, args):
    """Authenticate to Okta and return (saml_assertion, http_session)."""
    okta_url = settings.get("okta_url", args.okta_url)
    app_url = settings.get("app_url", args.app_url)
    username = settings.get("username", args.username)

    # Prompt for any missing required values
    if not okta_url:
        okta_url = input("Okta URL (e.g. https://corp.okta.com): ").strip()
    if not app_url:
        app_url = input("Okta AWS app URL (embed link): ").strip()
    if not username:
        username = input("Username: ").strip()

    okta_url = okta.normalize_okta_url(okta_url)

    print(f"\nAuthenticating to {okta_url} as {username}...")
    password = getpass.getpass("Password: ")
    session_token = okta.authenticate(okta_url, username, password)
    print("Okta authentication successful.")

    print("Retrieving SAML assertion from AWS app...")
    saml_assertion, _, http_session = okta.get_saml_assertion(okta_url, app_url, session_token)
    return saml_assertion, http_session


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def run_login(args, settings, saml_assertion, http_session, store, exchanger, region):
    """Interactive login: pick an account/role and save or print credentials."""
    parsed = parse_assertion(saml_assertion)
    bindings = require_bindings(parsed)

    aliases = console.fetch_account_aliases(
        saml_assertion, http_session, settings.get("signin_url", fallback=console.SIGNIN_URL)
    )
    binding = console.select_binding(bindings, aliases, args.account, args.role)
    selection = console.build_selection(binding, aliases, parsed.principal_name)

    profile = settings.get("profile", args.profile)
    duration = settings.get_int("duration", args.duration)

    print(f"\nAssuming role: {binding.role_arn}")
    result = perform_login(selection, saml_assertion, exchanger, duration, profile, store)

    print(f"\nAccount: {result.account_alias} ({result.account_id})")
    print(f"Role:    {result.role_name}")
    if result.principal_name:
        print(f"As:      {result.principal_name}")
    print(f"Expires: {_format_expiry(result.expiration)}")

    if profile:
        store.set_region(profile, region)
        print(f"\nCredentials written to profile '{profile}' ({store.path})")
        print()
        if profile == "default":
            print("  aws s3 ls")
        else:
            print(f"  aws --profile {profile} s3 ls")
            print(f"  # or: export AWS_PROFILE={profile}")
    else:
        creds = result.credentials
        print()
        print(f"export AWS_ACCESS_KEY_ID={creds.access_key_id}")
        print(f"export AWS_SECRET_ACCESS_KEY={creds.secret_access_key}")
        print(f"export AWS_SESSION_TOKEN={creds.session_token}")
        print(f"export AWS_DEFAULT_REGION={region}")
    return 0


def run_refresh(args, saml_assertion, store, exchanger):
    """Renew stored profiles; exit status 2 when any profile failed."""
    outcomes = refresh_profiles(
        saml_assertion, store, exchanger, name=args.profile, override_duration=args.duration
    )
    if not outcomes:
        target = f"named '{args.profile}' " if args.profile else ""
        print(f"No profiles {target}found in {store.path}")
        return 0

    failed = 0
    for outcome in outcomes:
        if outcome.status == SKIPPED:
            print(f"  {outcome.name}: skipped (not a SAML profile)")
        elif outcome.status == FAILURE:
            failed += 1
            print(f"  {outcome.name}: FAILED: {outcome.reason}")
        else:
            print(f"  {outcome.name}: refreshed, expires {_format_expiry(outcome.expiration)}")
    return 2 if failed else 0


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_parser():
    parser = argparse.ArgumentParser(
        prog="saml-aws",
        description="Get AWS CLI credentials from an Okta SAML login and keep profiles refreshed.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  saml-aws                              Pick an account/role, print exports
  saml-aws --profile dev                Store credentials in 'dev' profile
  saml-aws --account 123456789012 \\
           --role MyRole --profile dev  Pre-select account and role (no prompts)
  saml-aws --refresh                    Renew every stored SAML profile
  saml-aws --refresh --profile dev      Renew only 'dev'
""",
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH,
                        help="Path to config file (default: ~/.saml-aws)")
    parser.add_argument("--config-section", default=DEFAULT_SECTION,
                        help="Section of the config file to use (default: default)")
    parser.add_argument("--profile",
                        help="Profile to save (login) or to renew (refresh)")
    parser.add_argument("--refresh", action="store_true",
                        help="Renew stored profiles instead of logging in to one role")
    parser.add_argument("--assertion-file",
                        help="Read the base64 SAML assertion from a file ('-' for stdin) instead of Okta")
    parser.add_argument("--username", help="Okta username (overrides config)")
    parser.add_argument("--okta-url",
                        help="Okta organization URL, e.g. https://corp.okta.com")
    parser.add_argument("--app-url",
                        help="Okta AWS app embed link URL")
    parser.add_argument("--region", help=f"AWS region for STS and the profile (default: {DEFAULT_REGION})")
    parser.add_argument("--duration", type=int,
                        help="Session duration in seconds (login default: 3600; "
                             "refresh default: each profile's stored duration)")
    parser.add_argument("--account",
                        help="Pre-select AWS account ID or alias (skips account prompt)")
    parser.add_argument("--role",
                        help="Pre-select IAM role name (skips role prompt)")
    parser.add_argument("--credentials-file",
                        help="AWS credentials file holding the profiles (default: ~/.aws/credentials)")
    parser.add_argument("--debug", action="store_true",
                        help="Log verbose debug information (URLs, SAML XML)")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)

    try:
        settings = Settings(load_config(args.config), args.config_section)
        region = settings.get("region", args.region, DEFAULT_REGION)
        store = ProfileStore(settings.get("credentials_file", args.credentials_file, AWS_CREDENTIALS_PATH))
        exchanger = StsExchanger(region=region)

        if args.assertion_file:
            saml_assertion, http_session = read_assertion_file(args.assertion_file), None
        else:
            saml_assertion, http_session = okta_login(settings, args)

        if args.debug:
            try:
                log.debug("Decoded SAML XML (first 3000 chars):\n%s", decode_assertion(saml_assertion)[:3000])
            except SamlAwsError as exc:
                log.debug("Could not decode SAML assertion: %s", exc)

        if args.refresh:
            return run_refresh(args, saml_assertion, store, exchanger)
        return run_login(args, settings, saml_assertion, http_session, store, exchanger, region)
    except (SamlAwsError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
