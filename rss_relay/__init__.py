"""
RSS Relay - Poll RSS feeds and relay new articles to a Telegram channel.

A Python application that checks RSS/Atom feeds on a schedule, remembers
which articles were already delivered, and posts new ones to a chat channel
managed through bot commands.
"""

__version__ = "1.0.0"
