"""Emergency shutdown watchdog for unhandled Mastodon moderation reports."""
