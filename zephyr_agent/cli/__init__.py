"""
ze-agent - command line deploys of a built output directory.

Usage:
    ze-agent deploy dist/
    ze-agent manifest dist/
    ze-agent uid acme web shell
    ze-agent explain ZE10018
"""

__cli_name__ = "ze-agent"
