"""Local HTTP control endpoint for screenpager.

Lets another process (a UI shell, a script) drive a capture session
over HTTP instead of calling the scheduler in-process.
"""
