"""
Version information for the smart account SDK.
"""
import importlib.metadata

DISTRIBUTION_NAME = "smartaccount-sdk"

try:
    __version__ = importlib.metadata.version(DISTRIBUTION_NAME)
except importlib.metadata.PackageNotFoundError:
    # Running from a source checkout that was never installed
    __version__ = "0.0.0+unknown"

# Sent with every JSON-RPC request so bundler operators can tell SDK versions apart
USER_AGENT = f"{DISTRIBUTION_NAME}/{__version__}"
