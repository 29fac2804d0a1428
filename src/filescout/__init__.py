"""
filescout - Core Package

An interactive search tool that ranks every file and folder under a search
root and serves live, ranked results while the user types.
"""

__version__ = "0.1.0"
__author__ = "filescout developers"
