"""RealmGuard services."""
