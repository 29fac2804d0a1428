"""
Terminal adapters: key reading, rendering and the OS open action.
"""
