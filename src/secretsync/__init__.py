"""
secretsync -- keep local secret files in step with Vault.

A project declares its secret files in ``secrets.yaml``. Each sync
fetches the remote secrets, compares them with the local files and the
``secrets.lock`` record of the last sync, and pulls or pushes whatever
changed on one side only. Conflicting edits are resolved by flag, by
prompt, or reported.
"""

__version__ = "0.1.0"

# Overridden at runtime by $SECRETSYNC_HOME.
CONFIG_HOME = "~/.config/secretsync"
