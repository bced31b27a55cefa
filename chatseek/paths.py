"""XDG-compliant storage paths for chatseek.

Directory layout follows XDG Base Directory Specification:
- ~/.config/chatseek/       Config and API credentials (persistent)
- ~/.local/share/chatseek/  User data such as the JID cache (persistent)
- ~/.local/state/chatseek/  Logs (safe to delete)

See: https://specifications.freedesktop.org/basedir-spec/latest/
"""

from pathlib import Path

# Base directories
CONFIG_DIR = Path.home() / ".config" / "chatseek"
DATA_DIR = Path.home() / ".local" / "share" / "chatseek"
STATE_DIR = Path.home() / ".local" / "state" / "chatseek"

# Config: connection settings and search defaults
CONFIG_FILE = CONFIG_DIR / "config.json"

# Data: persistent user data
JID_CACHE_FILE = DATA_DIR / "jids.json"

# State: JSON-lines log written by --json-log auto
LOG_FILE = STATE_DIR / "chatseek.log"
