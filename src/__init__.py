from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("iirose-room-plugins")
except PackageNotFoundError:
    # Package not installed, fallback for development
    __version__ = "dev"
