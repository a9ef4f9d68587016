"""forum-relay: relays new Reddit and Discourse content into Discord forum threads."""

__version__ = "0.1.0"
