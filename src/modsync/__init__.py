"""modsync - Status of embedded modules across a git history."""

__version__ = "0.1.0"

# Directory and file constants
MODSYNC_DIR = ".modsync"
CONFIG_FILE = "config.json"
INFO_FILE = ".modinfo"
