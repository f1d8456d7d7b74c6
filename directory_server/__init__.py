"""REST daemon and command-line tool for the media directory."""
