"""Behave environment hooks that run the sanity lifecycle around scenarios.

Import them into a suite's ``features/environment.py``::

    from csi_sanity.hooks import after_all, after_scenario, before_all, before_scenario

The session comes from behave userdata key ``csi_sanity.context`` when the
suite is started by ``run_suite``; otherwise it is built from ``-D`` userdata
values (``-D address=unix:///csi/csi.sock -D config=csi-sanity.yaml``).
"""

from __future__ import annotations

import logging

from behave.model import Scenario
from behave.runner import Context

from csi_sanity.config import ConfigLoader
from csi_sanity.constants import USERDATA_CONTEXT_KEY
from csi_sanity.context import SanityContext

logger = logging.getLogger(__name__)


def before_all(context: Context) -> None:
    """Attach the suite's SanityContext to the behave context."""
    userdata = context.config.userdata
    sanity = userdata.get(USERDATA_CONTEXT_KEY)

    if sanity is None:
        config = ConfigLoader().from_userdata(userdata)
        sanity = SanityContext(config)
        context.sanity_owned = True
    else:
        context.sanity_owned = False

    context.sanity = sanity


def before_scenario(context: Context, scenario: Scenario) -> None:
    """Provision secrets, connections and paths for the scenario."""
    logger.debug("Setting up scenario %s", scenario.name)
    context.sanity.setup()


def after_scenario(context: Context, scenario: Scenario) -> None:
    """Remove the scenario's paths; connections stay open."""
    context.sanity.teardown()


def after_all(context: Context) -> None:
    """Close connections when the hooks created the session."""
    sanity = getattr(context, "sanity", None)
    if sanity is not None and getattr(context, "sanity_owned", False):
        sanity.close()
