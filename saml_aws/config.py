"""
User configuration read from ``~/.saml-aws``.

    [default]
    okta_url = https://corp.okta.com
    app_url = https://corp.okta.com/home/amazon_aws/0oa.../272
    username = jdoe
    region = eu-west-1
    duration = 3600
    profile = dev

Command-line values win over the file, the file wins over built-in fallbacks.
"""

import configparser
import os

from .errors import ConfigFileError

DEFAULT_CONFIG_PATH = os.path.expanduser("~/.saml-aws")
DEFAULT_SECTION = "default"
DEFAULT_REGION = "us-east-1"


def load_config(config_path):
    """Load configuration from an INI file."""
    config = configparser.ConfigParser(interpolation=None)
    config_path = os.path.expanduser(config_path)
    if os.path.exists(config_path):
        try:
            config.read(config_path)
        except configparser.Error as exc:
            raise ConfigFileError(f"Cannot parse {config_path}: {exc}") from exc
    return config


class Settings:
    """Looks up settings in command-line values first, then one config section."""

    def __init__(self, config, section=DEFAULT_SECTION):
        self.config = config
        self.section = section

    def get(self, key, arg_val=None, fallback=None):
        """Return arg_val if set, else config value, else fallback."""
        if arg_val is not None:
            return arg_val
        if self.config.has_section(self.section) and self.config.has_option(self.section, key):
            return self.config.get(self.section, key)
        return fallback

    def get_int(self, key, arg_val=None, fallback=None):
        """Like get() but converts a config value to int.

        Raises ValueError naming the key when the stored value is not a number.
        """
        value = self.get(key, arg_val, fallback)
        if value is None or isinstance(value, int):
            return value
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Setting '{key}' must be an integer, got {value!r}") from None
