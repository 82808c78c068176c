"""RealmGuard utilities."""
