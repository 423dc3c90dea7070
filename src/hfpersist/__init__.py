"""
hfpersist: archive persistence for stateless containers.

Packs local directories into timestamped archives, ships them to a
remote dataset, keeps only the newest few, and brings the latest one
back on the next boot before the application starts.
"""

import os

__version__ = "0.1.0"

DEFAULT_CONFIG_FILE = os.environ.get("CONFIG_FILE", "./persistence.conf")
