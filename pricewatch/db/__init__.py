"""SQLite persistence for pricewatch."""
