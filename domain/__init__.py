"""Pure helpers for the Intelligence Vault: summary parsing, rival validation, persistence."""
