"""RealmGuard core: logging, configuration, exceptions and constants."""
