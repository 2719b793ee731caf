"""Parts Portal backend: vendor part submissions and manager catalog."""
