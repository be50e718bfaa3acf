"""relctl: release automation for the api, terminal and jobs projects."""

__version__ = "0.1.0"
