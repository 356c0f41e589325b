"""
Keg - install prebuilt binary releases from checksummed formulas.

A formula is an immutable release descriptor: a versioned download URL, the
checksum binding it to exactly one artifact, which file to install under which
name, and a smoke test proving the installed binary runs.

- Fetch: stream the artifact, hashing while downloading
- Verify: a checksum mismatch aborts before anything is installed
- Install: copy into the Cellar, link into <prefix>/bin
- Test: run the binary (e.g. `talostpl --version`) and require exit status 0
"""

from .core import KegCore
from .settings import KegSettings, get_settings, reload_settings

__version__ = "0.1.0"
__all__ = [
    "KegCore",
    "KegSettings",
    "get_settings",
    "reload_settings",
]
