"""
Optional configuration loading.  The library itself only needs a
username and an app-specific password given to the ICloudCalendar
constructor; this module is an opt-in helper for host applications that
would rather keep those in the environment or in a config file.
"""
import json
import logging
import os
from typing import Any
from typing import Dict
from typing import Optional

from icloud_calendar.icloudclient import ICloudCalendar

log = logging.getLogger("icloud_calendar")

## config file keys, with the ICloudCalendar parameter they map to
CONFIG_KEYS = {
    "icloud_user": "username",
    "icloud_username": "username",
    "icloud_pass": "app_specific_password",
    "icloud_password": "app_specific_password",
    "icloud_url": "url",
    "icloud_timeout": "timeout",
}

## environment variables, ICLOUD_CONFIG_* are handled separately
ENV_KEYS = {
    "ICLOUD_USERNAME": "username",
    "ICLOUD_PASSWORD": "app_specific_password",
    "ICLOUD_URL": "url",
    "ICLOUD_TIMEOUT": "timeout",
}


def config_section(config: Dict[str, Any], section: str = "default") -> Dict[str, Any]:
    """Returns the section, with anything it ``inherits`` merged in below it"""
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    return ret


def read_config(fn: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Reads a json or yaml config file.  If no file name is given, a few
    well-known locations are tried.  Returns None if no file was
    found, and an empty dict if the file couldn't be parsed.
    """
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config"
        for config_file in (
            f"{cfgdir}/icloud_calendar/calendar.conf",
            f"{cfgdir}/icloud_calendar/calendar.yaml",
            f"{cfgdir}/icloud_calendar/calendar.json",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    try:
        with open(fn, "rb") as config_file:
            return json.load(config_file)
    except FileNotFoundError:
        log.info(f"no config file {fn} found")
        return None
    except json.decoder.JSONDecodeError:
        ## yaml is an optional dependency, install the yaml extra for it
        try:
            import yaml
        except ImportError:
            log.error(
                f"config file {fn} exists but is not valid json, and pyyaml is not installed."
            )
            return {}
        try:
            with open(fn, "rb") as config_file:
                return yaml.safe_load(config_file) or {}
        except yaml.YAMLError:
            log.error(
                f"config file {fn} exists but is neither valid json nor yaml.  Check the syntax."
            )
            return {}


def _build(conn_params: Dict[str, Any], source: str) -> Optional[ICloudCalendar]:
    missing = [
        param
        for param in ("username", "app_specific_password")
        if not conn_params.get(param)
    ]
    if missing:
        log.info(f"{source} lacks {' and '.join(missing)}, not using it")
        return None
    if conn_params.get("timeout") is not None:
        conn_params["timeout"] = int(conn_params["timeout"])
    return ICloudCalendar(**conn_params)


def get_icloud_calendar(
    config_file: Optional[str] = None,
    config_section_name: Optional[str] = None,
    environment: bool = True,
    **config_data,
) -> Optional[ICloudCalendar]:
    """
    This function will yield an ICloudCalendar object, or None if no
    credentials could be found.  It will not try to connect.  It will
    read configuration from various sources, in this order:

    * The keyword arguments given (``username``, ``app_specific_password``, ...)
    * Environment variables ``ICLOUD_USERNAME``, ``ICLOUD_PASSWORD``,
      ``ICLOUD_URL`` and ``ICLOUD_TIMEOUT``
    * A config file section, the file and section may be given through
      ``ICLOUD_CONFIG_FILE`` and ``ICLOUD_CONFIG_SECTION``

    The environment and the config file are only used if they hold
    both a username and a password.
    """
    if config_data:
        return ICloudCalendar(**config_data)

    if environment:
        conn_params = {
            param: os.environ[env_key]
            for env_key, param in ENV_KEYS.items()
            if os.environ.get(env_key)
        }
        if conn_params:
            icloud = _build(conn_params, "environment")
            if icloud:
                return icloud
        if not config_file:
            config_file = os.environ.get("ICLOUD_CONFIG_FILE")
        if not config_section_name:
            config_section_name = os.environ.get("ICLOUD_CONFIG_SECTION")

    cfg = read_config(config_file)
    if not cfg:
        return None

    section_name = config_section_name or "default"
    section = config_section(cfg, section_name)
    conn_params = {
        CONFIG_KEYS[key]: value
        for key, value in section.items()
        if key in CONFIG_KEYS and value
    }
    return _build(conn_params, f"config section {section_name}")
