"""Main module for the craftlaunch API.

The API is split in two halves that only share the on-disk layout: the installer
(`craftlaunch.standard.Installer`) resolves a version from the remote manifest and
materializes its client, assets, libraries and natives under a root directory, and
the launcher (`craftlaunch.launch.Launcher`) later reads that layout to build the
game's command line and spawn it.
"""

LAUNCHER_NAME = "craftlaunch"
LAUNCHER_VERSION = "1.0.0"
