"""Version information for lingobus."""

from lingobus_schemas.version import VersionInfo

VERSION = VersionInfo(major=0, minor=1, patch=0)
