"""
facetcraft CLI.

Usage:
    facetcraft inspect <module>
    facetcraft projection <module>:<Facet>
    facetcraft dashboard <module> -o report.html
    facetcraft check <module>
"""

from .. import __version__

__cli_name__ = "facetcraft"
