"""Browser automation: surface adapter, navigation, retry and stabilization."""
