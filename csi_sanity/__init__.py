"""Environment provisioning and session lifecycle for CSI sanity tests."""

from csi_sanity.config import Config, ConfigLoader
from csi_sanity.context import SanityContext
from csi_sanity.credentials import CSISecrets, load_secrets
from csi_sanity.naming import UniqueNames
from csi_sanity.provisioning import create_location, remove_location
from csi_sanity.runner import run_suite

__version__ = "0.4.0"

__all__ = [
    "CSISecrets",
    "Config",
    "ConfigLoader",
    "SanityContext",
    "UniqueNames",
    "create_location",
    "load_secrets",
    "remove_location",
    "run_suite",
]
