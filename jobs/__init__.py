"""Background workers for qualifying event delivery."""
