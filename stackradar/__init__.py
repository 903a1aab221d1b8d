"""StackRadar: version, EOL and vulnerability tracking for your tech stack.

This package resolves the latest release, lifecycle dates and known
vulnerabilities of hand-entered technologies from public sources, and
condenses them into a single upgrade priority per technology.
"""

__version__ = "0.3.0"
